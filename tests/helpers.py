import json

from fastapi.testclient import TestClient


class RecordingChannel:
    """Event feed channel that keeps every frame it is sent."""

    def __init__(self):
        self.frames = []
        self.closed = False

    def send(self, frame: str) -> None:
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True

    def events(self):
        out = []
        for frame in self.frames:
            lines = frame.strip().split("\n")
            name = lines[0][len("event: "):]
            data = json.loads(lines[1][len("data: "):])
            out.append((name, data))
        return out


class BrokenChannel:
    def __init__(self):
        self.closed = False

    def send(self, frame: str) -> None:
        raise ConnectionResetError("peer went away")

    def close(self) -> None:
        self.closed = True


def register(client: TestClient, username: str, password: str = "password123"):
    res = client.post("/auth/register", json={"username": username, "password": password})
    assert res.status_code == 201, res.text
    return res.json()["user"]


def login(client: TestClient, username: str, password: str = "password123"):
    res = client.post("/auth/login", json={"username": username, "password": password})
    assert res.status_code == 200, res.text
    return res.json()["user"]


def set_cookies(response) -> dict:
    """Set-Cookie headers of a response keyed by cookie name."""
    out = {}
    for header in response.headers.get_list("set-cookie"):
        name = header.split("=", 1)[0]
        out[name] = header
    return out
