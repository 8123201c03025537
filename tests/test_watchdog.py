import socket

from airvinyl.watchdog import sd_notify, sd_status


def test_notify_without_socket_is_noop():
    assert sd_notify("READY=1") is False


def test_status_line_reaches_systemd(tmp_path, monkeypatch):
    path = str(tmp_path / "notify.sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    server.bind(path)
    try:
        monkeypatch.setenv("NOTIFY_SOCKET", path)
        assert sd_status("Streaming to 192.168.1.20:7000 at 40%")
        assert server.recv(1024) == b"STATUS=Streaming to 192.168.1.20:7000 at 40%"
    finally:
        server.close()
