"""
Tests for the user-visible notification feed.
"""
from orchestrator.errors import CaptureErrorCategory, CaptureFailed, StorageError
from orchestrator.notifications import Notifier, Variant


def test_notify_appends_and_emits(capsys):
    notifier = Notifier()

    notification = notifier.notify("Recording Started", "Speak now.", session_id="sess_1")

    assert notification.id == 1
    assert notification.variant == Variant.DEFAULT
    assert notifier.items() == [notification]
    out = capsys.readouterr().out
    assert "ux.notification" in out
    assert '"severity": "info"' in out


def test_notify_error_uses_category():
    notifier = Notifier()
    failure = CaptureFailed("denied", category=CaptureErrorCategory.PERMISSION_DENIED)

    notification = notifier.notify_error(failure, session_id="sess_1")

    assert notification.kind == "capture.permission_denied"
    assert notification.title == "Speech Recognition Error"
    assert notification.variant == Variant.DESTRUCTIVE


def test_warning_variant_and_dict():
    notifier = Notifier()

    data = notifier.notify_error(StorageError("disk"), variant=Variant.WARNING).to_dict()

    assert data["variant"] == "warning"
    assert data["kind"] == "storage.failed"
    assert isinstance(data["ts"], str)


def test_feed_is_bounded_and_incremental():
    notifier = Notifier(limit=3)
    for i in range(5):
        notifier.notify(f"n{i}", "")

    assert [n.title for n in notifier.items()] == ["n2", "n3", "n4"]
    assert [n.title for n in notifier.items(since_id=4)] == ["n4"]

    notifier.clear()
    assert notifier.items() == []
