import base64
import io

import pytest
from PIL import Image

from blueprint_qa.exceptions.domain_exceptions import InvalidImagePayloadError
from blueprint_qa.utils.image_payload import encode_image_data_url, parse_image_data_url


def decode_data_url(data_url: str) -> Image.Image:
    _, encoded = data_url.split(",", 1)
    return Image.open(io.BytesIO(base64.b64decode(encoded)))


class TestParseImageDataUrl:
    def test_parses_mime_type_and_data(self, sample_image):
        payload = parse_image_data_url(sample_image)

        assert payload.mime_type == "image/png"
        assert payload.data == sample_image.split(",", 1)[1]

    def test_accepts_jpeg(self):
        assert parse_image_data_url("data:image/jpeg;base64,/9j/4AAQ").mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "image",
        [
            "not-a-data-url",
            "data:text/plain;base64,SGVsbG8=",
            "data:image/png,rawdata",
            "data:image/png;base64,",
            "https://example.com/page.png",
        ],
    )
    def test_rejects_non_data_urls(self, image):
        with pytest.raises(InvalidImagePayloadError) as exc_info:
            parse_image_data_url(image, page_number=4)

        assert exc_info.value.message == "Invalid image payload. Expected a base64 data URL."
        assert exc_info.value.page_number == 4


class TestEncodeImageDataUrl:
    def test_downscales_long_edge_to_target(self):
        image = Image.new("RGB", (2560, 1280), color="white")

        data_url = encode_image_data_url(image, target_px=1280)

        assert data_url.startswith("data:image/jpeg;base64,")
        assert decode_data_url(data_url).size == (1280, 640)

    def test_never_upscales(self):
        image = Image.new("RGB", (200, 100), color="white")

        assert decode_data_url(encode_image_data_url(image, target_px=1280)).size == (200, 100)

    def test_rgba_converted_for_jpeg(self):
        image = Image.new("RGBA", (50, 50), color=(255, 0, 0, 128))

        decoded = decode_data_url(encode_image_data_url(image))

        assert decoded.format == "JPEG"
        assert decoded.mode == "RGB"

    def test_png_output(self):
        image = Image.new("RGBA", (40, 80))

        data_url = encode_image_data_url(image, target_px=20, mime_type="image/png")

        assert data_url.startswith("data:image/png;base64,")
        assert decode_data_url(data_url).size == (10, 20)

    def test_output_round_trips_through_parser(self):
        data_url = encode_image_data_url(Image.new("L", (30, 30)))

        assert parse_image_data_url(data_url).mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "kwargs",
        [{"target_px": 0}, {"quality": 0}, {"quality": 1.5}, {"mime_type": "image/gif"}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            encode_image_data_url(Image.new("RGB", (10, 10)), **kwargs)
