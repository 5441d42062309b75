import json
from unittest.mock import AsyncMock

from bangumi_crawler import __main__ as cli


def test_season_command_prints_json(mocker, capsys, tmp_path):
    aggregate = mocker.patch.object(
        cli, "aggregate_season", new=AsyncMock(return_value=[{"title": "アニメ"}])
    )

    exit_code = cli.main(["--config", str(tmp_path / "none.ini"), "season", "2023q2"])

    assert exit_code == 0
    assert aggregate.await_args.args[0] == "2023q2"
    assert json.loads(capsys.readouterr().out) == [{"title": "アニメ"}]


def test_season_command_writes_output_file(mocker, tmp_path):
    mocker.patch.object(cli, "aggregate_season", new=AsyncMock(return_value=[]))
    output = tmp_path / "out.json"

    cli.main(
        ["--config", str(tmp_path / "none.ini"), "--output", str(output), "season", "2023q2"]
    )

    assert json.loads(output.read_text(encoding="utf-8")) == []


def test_site_command_with_unknown_site_prints_empty_object(capsys, tmp_path):
    exit_code = cli.main(["--config", str(tmp_path / "none.ini"), "site", "nope", "1"])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == {}
