import unittest
from unittest import mock

from fakes import FakeChannel, FakeTransport, StagedChannel

from ssh_service import TERM_UNIT_PIXELS, SSHExecutionError
from ssh_service.executor import CommandExecutor, parse_response


class ParseResponseTests(unittest.TestCase):
    def test_zero_return_code_yields_empty_success(self) -> None:
        result = parse_response("true", "[return_code:0]\n", "")
        self.assertTrue(result.ok)
        self.assertEqual(result.stdout, "")
        self.assertEqual(result.exit_code, 0)

    def test_nonzero_return_code_raises_with_stripped_stdout(self) -> None:
        with self.assertRaises(SSHExecutionError) as ctx:
            parse_response("false", "[return_code:1]\n", "")
        self.assertEqual(str(ctx.exception), "")
        self.assertEqual(ctx.exception.exit_code, 1)

    def test_nonzero_return_code_keeps_command_output(self) -> None:
        with self.assertRaises(SSHExecutionError) as ctx:
            parse_response("grep x f", "partial output\r\n[return_code:2]\r\n", "")
        self.assertEqual(str(ctx.exception), "partial output\r\n")

    def test_stderr_always_fails(self) -> None:
        for stdout in ("[return_code:0]\n", "ok\n", ""):
            with self.assertRaises(SSHExecutionError) as ctx:
                parse_response("cmd", stdout, "warning: something\n")
            self.assertEqual(str(ctx.exception), "warning: something\n")
            self.assertEqual(ctx.exception.stderr, "warning: something\n")

    def test_missing_marker_returns_stdout_unchanged(self) -> None:
        result = parse_response("cmd", "no marker here\n", "")
        self.assertEqual(result.stdout, "no marker here\n")
        self.assertIsNone(result.exit_code)
        self.assertTrue(result.ok)

    def test_pty_line_terminator_is_stripped(self) -> None:
        result = parse_response("ls", "a\r\nb\r\n[return_code:0]\r\n", "")
        self.assertEqual(result.stdout, "a\r\nb\r\n")

    def test_empty_marker_succeeds_without_exit_code(self) -> None:
        result = parse_response("cmd", "done\n[return_code:]\n", "")
        self.assertEqual(result.stdout, "done\n")
        self.assertIsNone(result.exit_code)
        self.assertTrue(result.ok)

    def test_non_numeric_marker_fails(self) -> None:
        with self.assertRaises(SSHExecutionError):
            parse_response("cmd", "[return_code:abc]\n", "")

    def test_output_mimicking_marker_is_misparsed(self) -> None:
        # The first marker-shaped text wins, even when the command printed it.
        with self.assertRaises(SSHExecutionError):
            parse_response("cat log", "[return_code:7]\nreal\n[return_code:0]\n", "")


class CommandExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.transport = FakeTransport()

    def test_execute_appends_marker_and_strips_it(self) -> None:
        self.transport.channels.append(FakeChannel("Linux\n[return_code:0]\n"))
        result = CommandExecutor(self.transport).execute("uname")

        channel = self.transport.opened[0]
        self.assertEqual(channel.command, 'uname;echo "[return_code:$?]"')
        self.assertIsNone(channel.pty)
        self.assertTrue(channel.closed)
        self.assertEqual(result.command, "uname")
        self.assertEqual(str(result), "Linux\n")

    def test_large_output_is_read_in_full(self) -> None:
        payload = "x" * 100000 + "\n"
        self.transport.channels.append(FakeChannel(payload + "[return_code:0]\n"))
        result = CommandExecutor(self.transport).execute("cat big")
        self.assertEqual(result.stdout, payload)

    def test_pty_in_characters(self) -> None:
        self.transport.channels.append(FakeChannel("[return_code:0]\r\n"))
        CommandExecutor(self.transport).execute("top -bn1", pty="xterm", width=120, height=40)
        self.assertEqual(
            self.transport.opened[0].pty,
            {"term": "xterm", "width": 120, "height": 40, "width_pixels": 0, "height_pixels": 0},
        )

    def test_pty_in_pixels(self) -> None:
        self.transport.channels.append(FakeChannel("[return_code:0]\r\n"))
        CommandExecutor(self.transport).execute(
            "true", pty="vt100", width=640, height=480, width_height_type=TERM_UNIT_PIXELS
        )
        self.assertEqual(
            self.transport.opened[0].pty,
            {"term": "vt100", "width": 0, "height": 0, "width_pixels": 640, "height_pixels": 480},
        )

    def test_unknown_terminal_unit_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CommandExecutor(self.transport).execute("true", width_height_type=7)
        self.assertEqual(self.transport.opened, [])

    def test_exec_failure_raises(self) -> None:
        self.transport.channels.append(FakeChannel(fail_exec=True))
        with self.assertRaises(SSHExecutionError) as ctx:
            CommandExecutor(self.transport).execute("true")
        self.assertEqual(str(ctx.exception), "Failed to execute command on remote server")

    def test_rejected_environment_raises(self) -> None:
        self.transport.channels.append(FakeChannel(reject_env=True))
        with self.assertRaises(SSHExecutionError):
            CommandExecutor(self.transport).execute("env", env={"FOO": "bar"})

    def test_fire_and_forget_skips_reading(self) -> None:
        channel = FakeChannel("", "boom\n")
        self.transport.channels.append(channel)
        result = CommandExecutor(self.transport).execute("reboot", need_response=False)
        self.assertIsNone(result)
        self.assertEqual(channel.command, 'reboot;echo "[return_code:$?]"')
        self.assertTrue(channel.recv_stderr_ready())

    def test_stderr_from_channel_fails(self) -> None:
        self.transport.channels.append(FakeChannel("[return_code:0]\n", "permission denied\n"))
        with self.assertRaises(SSHExecutionError) as ctx:
            CommandExecutor(self.transport).execute("cat /root/x")
        self.assertEqual(str(ctx.exception), "permission denied\n")


class CommandExecutorPollingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.transport = FakeTransport()
        patcher = mock.patch("ssh_service.executor.time.sleep")
        self.sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def test_output_spread_over_polls_is_read_until_exit(self) -> None:
        channel = StagedChannel(
            [
                (b"Lin", b""),
                (b"", b""),
                (b"ux\n", b""),
                (b"[return_code:0]\n", b""),
            ],
            exit_after=6,
        )
        self.transport.channels.append(channel)

        result = CommandExecutor(self.transport).execute("uname")

        self.assertEqual(result.stdout, "Linux\n")
        self.assertEqual(channel.polls, 6)
        self.assertEqual(self.sleep.call_count, 2)

    def test_chunk_arriving_with_exit_status_is_kept(self) -> None:
        channel = StagedChannel(
            [(b"first\n", b""), (b"last\n[return_code:0]\n", b"")],
            exit_after=2,
        )
        self.transport.channels.append(channel)

        result = CommandExecutor(self.transport).execute("seq")

        self.assertEqual(result.stdout, "first\nlast\n")
        self.sleep.assert_not_called()

    def test_stderr_spread_over_polls_is_joined(self) -> None:
        channel = StagedChannel(
            [(b"", b"disk "), (b"", b""), (b"[return_code:0]\n", b"full\n")],
            exit_after=4,
        )
        self.transport.channels.append(channel)

        with self.assertRaises(SSHExecutionError) as ctx:
            CommandExecutor(self.transport).execute("df")
        self.assertEqual(str(ctx.exception), "disk full\n")

    def test_multibyte_character_split_across_polls(self) -> None:
        encoded = "café\n[return_code:0]\n".encode("utf-8")
        split = encoded.index(b"\xa9")
        channel = StagedChannel([(encoded[:split], b""), (encoded[split:], b"")], exit_after=3)
        self.transport.channels.append(channel)

        result = CommandExecutor(self.transport).execute("echo cafe")

        self.assertEqual(result.stdout, "café\n")


if __name__ == "__main__":
    unittest.main()
