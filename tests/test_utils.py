import base64
import io

import numpy as np
import pytest
from PIL import Image

from faceauth.exceptions import InvalidImage
from faceauth import utils
from faceauth.utils import OpenCVImageDecoder, decode_photo


def encode_image(size=(64, 48), color=(255, 0, 0), fmt="PNG") -> bytes:
    img_bytes = io.BytesIO()
    Image.new("RGB", size, color=color).save(img_bytes, format=fmt)
    return img_bytes.getvalue()


class TestDecodePhoto:

    def test_data_url(self):
        raw = encode_image()
        photo = "data:image/png;base64," + base64.b64encode(raw).decode()
        assert decode_photo(photo) == raw

    def test_bare_base64(self):
        raw = encode_image()
        assert decode_photo(base64.b64encode(raw).decode()) == raw

    def test_invalid_base64(self):
        with pytest.raises(InvalidImage):
            decode_photo("data:image/jpeg;base64,not base64 at all!")

    def test_empty_payload(self):
        with pytest.raises(InvalidImage):
            decode_photo("data:image/jpeg;base64,")

    def test_size_limit(self):
        photo = base64.b64encode(b"x" * 101).decode()
        with pytest.raises(InvalidImage):
            decode_photo(photo, max_bytes=100)

    def test_oversized_payload_is_rejected_before_decoding(self, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("payload should not be decoded")

        monkeypatch.setattr(utils.base64, "b64decode", fail)
        photo = "data:image/jpeg;base64," + "A" * 400

        with pytest.raises(InvalidImage):
            decode_photo(photo, max_bytes=100)

    def test_payload_at_the_limit(self):
        raw = b"x" * 100
        assert decode_photo(base64.b64encode(raw).decode(), max_bytes=100) == raw


class TestOpenCVImageDecoder:

    def test_png_is_decoded_to_bgr(self):
        bgr = OpenCVImageDecoder().decode(encode_image(size=(64, 48), color=(255, 0, 0)))

        assert bgr.shape == (48, 64, 3)
        assert bgr.dtype == np.uint8
        # Red in RGB is the last channel in BGR
        assert bgr[0, 0].tolist() == [0, 0, 255]

    def test_large_image_is_shrunk(self):
        decoder = OpenCVImageDecoder(max_size=(100, 100))
        bgr = decoder.decode(encode_image(size=(400, 200)))
        assert bgr.shape == (50, 100, 3)

    def test_pillow_only_format(self):
        bgr = OpenCVImageDecoder().decode(encode_image(size=(32, 32), fmt="GIF"))
        assert bgr.shape == (32, 32, 3)

    def test_garbage_bytes(self):
        with pytest.raises(InvalidImage):
            OpenCVImageDecoder().decode(b"definitely not an image")

    def test_empty_bytes(self):
        with pytest.raises(InvalidImage):
            OpenCVImageDecoder().decode(b"")
