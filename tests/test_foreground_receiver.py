from notifier.client.receiver import DEFAULT_ICON, DEFAULT_TITLE, ForegroundReceiver


class FakeChannel:
    def __init__(self):
        self.handlers = []

    def on_message(self, handler):
        self.handlers.append(handler)
        return lambda: self.handlers.remove(handler)

    def deliver(self, message):
        for handler in list(self.handlers):
            handler(message)


class FakeSurface:
    def __init__(self):
        self.shown = []

    def show(self, title, *, body=None, icon=None):
        self.shown.append({"title": title, "body": body, "icon": icon})


def test_shows_foreground_message():
    channel, surface = FakeChannel(), FakeSurface()
    receiver = ForegroundReceiver(channel, surface)
    receiver.attach()

    channel.deliver({"notification": {"title": "Quiz", "body": "Tomorrow"}})

    assert surface.shown == [{"title": "Quiz", "body": "Tomorrow", "icon": DEFAULT_ICON}]


def test_missing_title_uses_default():
    channel, surface = FakeChannel(), FakeSurface()
    ForegroundReceiver(channel, surface).attach()

    channel.deliver({"data": {"someData": "compose"}})

    assert surface.shown[0]["title"] == DEFAULT_TITLE
    assert surface.shown[0]["body"] is None


def test_attach_twice_shows_once():
    channel, surface = FakeChannel(), FakeSurface()
    receiver = ForegroundReceiver(channel, surface, icon="/icons/bell.png")
    receiver.attach()
    receiver.attach()

    channel.deliver({"notification": {"title": "Hi"}})

    assert len(surface.shown) == 1
    assert surface.shown[0]["icon"] == "/icons/bell.png"


def test_detach():
    channel, surface = FakeChannel(), FakeSurface()
    receiver = ForegroundReceiver(channel, surface)
    receiver.attach()
    receiver.detach()

    channel.deliver({"notification": {"title": "Hi"}})

    assert surface.shown == []
    assert receiver.attached is False
