"""Tests for the CLI entry point."""

import json

import pytest

import copypasta.auth as auth
import copypasta.main as main_module
from copypasta.exceptions import RequestError, ServerError
from copypasta.main import dispatch_command, main


def test_parse_error_exit_code(capsys):
    assert main(['consume']) == 2
    assert 'Error:' in capsys.readouterr().err


def test_not_logged_in(tmp_path, capsys):
    """Test a missing credential file tells the user to log in."""
    code = main(['-c', str(tmp_path / 'missing'), 'list'])

    assert code == 1
    assert 'copypasta login' in capsys.readouterr().err


def test_output_printed(monkeypatch, capsys):
    monkeypatch.setattr(main_module, 'handle_default', lambda cmd: 'latest pasta')

    assert main([]) == 0
    assert capsys.readouterr().out == 'latest pasta\n'


def test_no_output_prints_nothing(monkeypatch, capsys):
    monkeypatch.setattr(main_module, 'handle_produce', lambda cmd: None)

    assert main(['produce']) == 0
    assert capsys.readouterr().out == ''


@pytest.mark.parametrize('error', [ServerError(500), RequestError('Cannot connect')])
def test_client_errors_exit_one(monkeypatch, capsys, error):
    def failing(cmd):
        raise error

    monkeypatch.setattr(main_module, 'handle_list', failing)

    assert main(['list']) == 1
    assert f'Error: {error}' in capsys.readouterr().err


def test_local_io_error(monkeypatch, capsys):
    def failing(cmd):
        raise BrokenPipeError('stdout closed')

    monkeypatch.setattr(main_module, 'handle_consume', failing)

    assert main(['consume', 'abc']) == 1
    assert 'stdout closed' in capsys.readouterr().err


def test_interrupt(monkeypatch):
    def interrupted(cmd):
        raise KeyboardInterrupt

    monkeypatch.setattr(main_module, 'handle_produce', interrupted)

    assert main(['produce']) == 130


def test_dispatch_unknown_command():
    with pytest.raises(TypeError):
        dispatch_command(object())


def test_aborted_token_prompt(config_path, patched_httpx, monkeypatch, capsys):
    """Test end of input at the token prompt is reported, not a traceback."""
    config_path.write_text(json.dumps({'token': 'expired', 'host': 'test:4000'}))

    def closed_prompt(*args, **kwargs):
        raise EOFError

    monkeypatch.setattr(auth, 'prompt', closed_prompt)

    assert main(['-c', str(config_path), 'list']) == 1
    assert 'Login aborted' in capsys.readouterr().err
