import threading
import pytest
from vpp.domain.models import ProcessingProgress, ProcessingStage
from vpp.infrastructure.progress_channel import ProgressChannel


def _conv(percent, current=1):
    return ProcessingProgress(stage=ProcessingStage.CONVERSION, resolution="360p", current=current, total=2, percent=percent)


def test_channel_preserves_order_across_threads():
    channel = ProgressChannel()
    sent = [ProcessingProgress(stage=ProcessingStage.THUMBNAILS, percent=0)] + [_conv(p) for p in range(0, 101, 10)]

    def producer():
        for item in sent:
            channel.send(item)
        channel.close()

    t = threading.Thread(target=producer)
    t.start()
    received = list(channel)
    t.join()

    assert received == sent


def test_channel_is_callable_as_sink():
    channel = ProgressChannel()
    channel(_conv(5))
    channel.close()
    assert [p.percent for p in channel] == [5]


def test_send_after_close_fails():
    channel = ProgressChannel()
    channel.close()
    channel.close()
    assert channel.closed
    with pytest.raises(RuntimeError):
        channel.send(_conv(1))


def test_receive_timeout():
    channel = ProgressChannel()
    assert channel.receive(timeout=0.01) == (True, None)
    channel.send(_conv(3))
    is_open, item = channel.receive(timeout=0.01)
    assert is_open and item.percent == 3
    channel.close()
    assert channel.receive(timeout=0.01) == (False, None)
