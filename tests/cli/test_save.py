"""
Tests for save command.
"""

from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from mdb_schema.cli.main import cli


def invoke(args, conn):
    runner = CliRunner()
    with patch("mdb_schema.cli.utils.SchemaConnection.connect", AsyncMock(return_value=conn)):
        return runner.invoke(cli, args)


class TestSaveCommand:
    """Test the save command."""

    def test_save_to_stdout(self, fake_conn):
        fake_conn.add_live_collection("posts", {"byDate": [("date", 1)]})
        fake_conn.add_live_group({"_id": "default", "rules": {"everyone": {"template": "true"}}})

        result = invoke(["save", "--connect", "localhost:27017", "--out-file", "-"], fake_conn)

        assert result.exit_code == 0, result.output
        assert result.output.startswith("# This is a TOML document\n")
        assert '[collections.posts]\nindexes = ["byDate"]' in result.output
        assert "[groups.default.rules.everyone]" in result.output
        assert fake_conn.closed is True

    def test_save_to_file(self, fake_conn, tmp_path):
        """Test the output file and its parent directory are created."""
        fake_conn.add_live_collection("users")
        out_path = tmp_path / "nested" / "schema.toml"

        result = invoke(["save", "--connect", "localhost:27017", "-o", str(out_path)], fake_conn)

        assert result.exit_code == 0, result.output
        assert out_path.read_text() == "# This is a TOML document\n\n[collections.users]\n"

    def test_save_default_path(self, fake_conn):
        runner = CliRunner()
        with runner.isolated_filesystem():
            with patch("mdb_schema.cli.utils.SchemaConnection.connect", AsyncMock(return_value=fake_conn)):
                result = runner.invoke(cli, ["save", "--connect", "localhost:27017"])

            assert result.exit_code == 0, result.output
            with open(".hz/schema.toml") as f:
                assert f.read().startswith("# This is a TOML document")

    def test_save_readiness_timeout(self, fake_conn):
        fake_conn.ready = False

        result = invoke(["save", "--connect", "localhost:27017", "-o", "-"], fake_conn)

        assert result.exit_code == 1
        assert "timed out" in result.output.lower()

    def test_bad_connect_value(self, fake_conn):
        result = invoke(["save", "--connect", "localhost"], fake_conn)

        assert result.exit_code == 1
        assert "HOST:PORT" in result.output
