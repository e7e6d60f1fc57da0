# Run with   python -m pytest tests

import io
import logging

import pytest

import txshell
from txstore import TxStore


def session(text):
    out = io.StringIO()
    code = txshell.run(TxStore(), io.StringIO(text), out)
    return code, out.getvalue().splitlines()


class TestRun:
    def test_basic_commands(self):
        code, lines = session(
            "SET a 10\n"
            "SET b 10\n"
            "NUMEQUALTO 10\n"
            "GET a\n"
            "UNSET a\n"
            "GET a\n"
            "NUMEQUALTO 10\n"
            "END\n"
        )
        assert code == 0
        assert lines == ["2", "10", "NULL", "1"]

    def test_transactions(self):
        _, lines = session(
            "SET a 10\n"
            "SET b 20\n"
            "BEGIN\n"
            "SET a 20\n"
            "NUMEQUALTO 20\n"
            "UNSET a\n"
            "NUMEQUALTO 20\n"
            "ROLLBACK\n"
            "NUMEQUALTO 10\n"
            "GET a\n"
            "END\n"
        )
        assert lines == ["2", "1", "1", "10"]

    def test_no_transaction(self):
        _, lines = session("ROLLBACK\nCOMMIT\nBEGIN\nCOMMIT\nCOMMIT\n")
        assert lines == ["NO TRANSACTION", "NO TRANSACTION", "NO TRANSACTION"]

    def test_lowercase_commands_and_blank_lines(self):
        _, lines = session("set a foo\n\n   \nget a\nend\n")
        assert lines == ["foo"]

    def test_end_stops_reading(self):
        _, lines = session("SET a 1\nEND\nGET a\n")
        assert lines == []

    def test_eof_without_end(self):
        code, lines = session("SET a 1\nGET a")
        assert code == 0
        assert lines == ["1"]

    @pytest.mark.parametrize("line", [
        "FROB a",
        "SET a",
        "SET a b c",
        "GET",
        "UNSET",
        "NUMEQUALTO",
        "BEGIN now",
        "ROLLBACK x",
        "COMMIT x",
    ])
    def test_bad_usage_prints_error(self, line):
        _, lines = session(line + "\n")
        assert lines == ["ERROR"]

    def test_rejected_command_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="txshell"):
            session("FROB a\n")
        assert "FROB a" in caplog.text


class TestPromptedLines:
    def test_prompt_written_before_each_read(self):
        out = io.StringIO()
        lines = list(txshell.prompted_lines(io.StringIO("GET a\nEND\n"), "> ", out))
        assert lines == ["GET a\n", "END\n"]
        assert out.getvalue() == "> > > "

    def test_no_prompt(self):
        out = io.StringIO()
        list(txshell.prompted_lines(io.StringIO("GET a\n"), None, out))
        assert out.getvalue() == ""


class TestMain:
    def test_parse_args_defaults(self):
        args = txshell.parse_args([])
        assert args.prompt == "> "
        assert args.no_prompt is False
        assert args.log_level == "WARNING"

    def test_main_reads_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("SET a 1\nNUMEQUALTO 1\nEND\n"))
        assert txshell.main(["--no_prompt"]) == 0
        assert capsys.readouterr().out == "1\n"
