import builtins
import io
import os
import shlex
from unittest import mock

import paramiko
import pytest

from httpaas import ssh

_REAL_OPEN = builtins.open
_PARAMIKO_ERRORS = (
    "SSHException",
    "AuthenticationException",
    "BadHostKeyException",
    "PasswordRequiredException",
)


@pytest.fixture(scope="module")
def key_text():
    buffer = io.StringIO()
    paramiko.RSAKey.generate(bits=1024).write_private_key(buffer)
    return buffer.getvalue()


@pytest.fixture
def fake_paramiko(key_text, tmp_path):
    """Replace paramiko inside the ssh module and serve a key for any key path."""

    def fake_open(path, mode="r", *args, **kwargs):
        name = os.fspath(path)
        if os.path.exists(name) or name.startswith(str(tmp_path)):
            return _REAL_OPEN(name, mode, *args, **kwargs)
        if "b" in mode:
            return io.BytesIO(key_text.encode())
        return io.StringIO(key_text)

    with mock.patch("httpaas.ssh.paramiko") as module, mock.patch(
        "httpaas.ssh.open", fake_open, create=True
    ):
        for name in _PARAMIKO_ERRORS:
            setattr(module, name, getattr(paramiko, name))
        module.ssh_exception = paramiko.ssh_exception
        yield module


@pytest.fixture
def fake_client(fake_paramiko):
    client = fake_paramiko.SSHClient.return_value
    channel = _channel(client)
    channel.makefile.return_value.read.return_value = b"done\n"
    channel.recv_exit_status.return_value = 0
    yield client


def _channel(client):
    return client.get_transport.return_value.open_session.return_value


def _password():
    return shlex.split(ssh.wrap_command("true"))[1]


def test_wrap_command_format():
    password = _password()
    assert ssh.wrap_command("ls -l") == f"echo '{password}' | sudo -S bash -c \"ls -l\""


@pytest.mark.parametrize(
    "cmd",
    [
        "echo hello",
        'echo "quoted" && true',
        r"sed -i 's/^127\.0\.1\.1.*/x/' /etc/hosts",
        "printf '%s' back\\slash",
    ],
)
def test_wrap_command_quotes_round_trip(cmd):
    tokens = shlex.split(ssh.wrap_command(cmd))
    assert tokens[-1] == cmd
    assert tokens[:4] == ["echo", _password(), "|", "sudo"]
    assert tokens[4:7] == ["-S", "bash", "-c"]


def test_wrap_command_escapes_control_characters():
    wrapped = ssh.wrap_command("a\nb")
    assert "\n" not in wrapped
    assert wrapped.endswith('"a\\nb"')


def test_connect_uses_host_and_port(fake_client):
    client = ssh.connect("10.0.0.5", 2231)
    assert client is fake_client
    args, kwargs = fake_client.connect.call_args
    assert args == ("10.0.0.5",)
    assert kwargs["port"] == 2231
    assert "username" in kwargs
    assert "pkey" in kwargs


def test_connect_failure_raises_ssh_error(fake_client):
    fake_client.connect.side_effect = OSError("refused")
    with pytest.raises(ssh.SSHError):
        ssh.connect("10.0.0.5", 2231)


def test_run_ssh_connect_refused(fake_client):
    fake_client.connect.side_effect = OSError("refused")
    with pytest.raises(ssh.SSHError, match="conexión SSH a host:2222 fallida"):
        ssh.run_ssh("host", "true", 2222)


def test_run_ssh_success_sends_wrapped_command(fake_client):
    result = ssh.run_ssh("host", "uptime", 2240)
    assert result is None
    channel = _channel(fake_client)
    channel.exec_command.assert_called_once_with(ssh.wrap_command("uptime"))
    channel.set_combine_stderr.assert_called_once_with(True)
    assert fake_client.connect.call_args.kwargs["port"] == 2240
    assert fake_client.close.call_count == 1


def test_run_ssh_failure_carries_output(fake_client):
    channel = _channel(fake_client)
    channel.makefile.return_value.read.return_value = b"boom"
    channel.recv_exit_status.return_value = 1
    with pytest.raises(ssh.SSHError, match="comando fallido en host:22") as info:
        ssh.run_ssh("host", "false")
    assert info.value.output == "boom"
    assert fake_client.close.called


def test_run_ssh_output_returns_output(fake_client):
    assert ssh.run_ssh_output("host", "cat /etc/hostname") == "done\n"
    assert fake_client.connect.call_args.kwargs["port"] == ssh.DEFAULT_PORT


def test_run_ssh_output_failure(fake_client):
    _channel(fake_client).recv_exit_status.return_value = 2
    with pytest.raises(ssh.SSHError) as info:
        ssh.run_ssh_output("host", "cat /missing")
    assert info.value.output == "done\n"


def test_run_ssh_output_connect_refused(fake_client):
    fake_client.connect.side_effect = OSError("refused")
    with pytest.raises(ssh.SSHError, match="conexión SSH a host fallida"):
        ssh.run_ssh_output("host", "true")


def test_copy_file_uploads_content(fake_client, tmp_path):
    local = tmp_path / "site.zip"
    content = b"PK\x03\x04" + bytes(range(256)) * 10
    local.write_bytes(content)
    sftp = fake_client.open_sftp.return_value
    remote = sftp.open.return_value
    ssh.copy_file("localhost", local, "/tmp/site.zip", 2230)
    sftp.open.assert_called_once_with("/tmp/site.zip", "wb")
    written = b"".join(call.args[0] for call in remote.write.call_args_list)
    assert written == content
    assert remote.close.called and sftp.close.called


def test_copy_file_missing_local(fake_client, tmp_path):
    with pytest.raises(ssh.SSHError, match="no se pudo abrir archivo local"):
        ssh.copy_file("localhost", tmp_path / "absent.zip", "/tmp/site.zip")


def test_copy_file_connect_refused(fake_client, tmp_path):
    fake_client.connect.side_effect = OSError("refused")
    with pytest.raises(ssh.SSHError, match="SFTP: conexión a localhost:2230 fallida"):
        ssh.copy_file("localhost", tmp_path / "x", "/tmp/x", 2230)


def test_wait_for_ssh_gives_up(fake_client):
    fake_client.connect.side_effect = OSError("refused")
    with mock.patch("httpaas.ssh.time.sleep") as sleep:
        with pytest.raises(ssh.SSHError, match="tras 3 intentos"):
            ssh.wait_for_ssh("localhost", 3, 2230)
    assert sleep.call_count == 3


def test_wait_for_ssh_succeeds(fake_client):
    with mock.patch("httpaas.ssh.time.sleep") as sleep:
        result = ssh.wait_for_ssh("localhost", 5, 2230)
    assert result is None
    assert sleep.call_count == 0
    assert fake_client.connect.call_count == 1
    assert fake_client.connect.call_args.kwargs["port"] == 2230
    assert fake_client.close.call_count == 1