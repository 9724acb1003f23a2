"""Tests for the ukulima offline CLI."""
import pytest
from click.testing import CliRunner

from ukulima.offline.actions import ApiCall, SendMessage
from ukulima.offline.queue import ActionQueue
from ukulima.offline.storage import FileStorage
from ukulima_cli.main import cli


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "device"
    monkeypatch.setenv("UKULIMA_DATA_DIR", str(path))
    monkeypatch.setenv("UKULIMA_PROBE_HOST", "127.0.0.1")
    monkeypatch.setenv("UKULIMA_PROBE_PORT", "1")
    monkeypatch.setenv("UKULIMA_PROBE_TIMEOUT", "0.2")
    return path


@pytest.fixture
def seeded_queue(data_dir):
    queue = ActionQueue(FileStorage(data_dir))
    queue.enqueue(SendMessage(receiver="u1", content="hi"))
    doomed = queue.enqueue(ApiCall(endpoint="/products", body={"name": "Maize"}))
    queue.dead_letter(doomed.id, "Invalid product", terminal=True)
    return queue


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "1.0.0" in result.output


def test_empty_queue(data_dir):
    result = CliRunner().invoke(cli, ["offline", "queue"])
    assert result.exit_code == 0
    assert "Queue is empty" in result.output


def test_queue_lists_pending(seeded_queue):
    result = CliRunner().invoke(cli, ["offline", "queue"])
    assert result.exit_code == 0
    assert "send_message" in result.output
    assert "Showing 1 of 1" in result.output


def test_dead_letters_table(seeded_queue):
    result = CliRunner().invoke(cli, ["offline", "dead-letters"])
    assert result.exit_code == 0
    assert "api_call" in result.output
    assert "Invalid product" in result.output


def test_resubmit_requeues(seeded_queue, data_dir):
    [letter] = seeded_queue.dead_letters()

    result = CliRunner().invoke(cli, ["offline", "resubmit", letter.id])

    assert result.exit_code == 0
    assert "Queued as" in result.output
    assert len(ActionQueue(FileStorage(data_dir))) == 2


def test_resubmit_unknown_id(data_dir):
    result = CliRunner().invoke(cli, ["offline", "resubmit", "missing"])
    assert "Resubmit failed" in result.output


def test_clear_dead_letters_confirmed(seeded_queue, data_dir):
    result = CliRunner().invoke(cli, ["offline", "clear-dead-letters"], input="y\n")

    assert result.exit_code == 0
    assert ActionQueue(FileStorage(data_dir)).dead_letters() == []


def test_sweep(data_dir):
    result = CliRunner().invoke(cli, ["offline", "sweep"])
    assert result.exit_code == 0
    assert "Removed 0 expired entries" in result.output


def test_connected_reports_offline(data_dir):
    result = CliRunner().invoke(cli, ["offline", "connected"])
    assert result.exit_code == 0
    assert '"connected": false' in result.output
