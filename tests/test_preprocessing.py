import numpy as np
import pytest
from PIL import Image

from neuroscan.preprocessing import ImagePreprocessor, image_dimensions, to_rgb_image
from neuroscan.tensors import TensorLedger


@pytest.mark.parametrize("size", [(224, 224), (640, 480), (17, 301), (1, 1), (1024, 64)])
def test_output_shape_is_fixed(size):
    pre = ImagePreprocessor(size=224)
    out = pre.preprocess(Image.new("RGB", size, (10, 20, 30)))
    assert out.shape == (1, 224, 224, 3)
    assert out.dtype == np.float32


@pytest.mark.parametrize("mode", ["L", "RGBA", "LA", "P", "I;16", "CMYK"])
def test_any_channel_layout_projects_to_rgb(mode):
    pre = ImagePreprocessor(size=224)
    out = pre.preprocess(Image.new(mode, (50, 70)))
    assert out.shape == (1, 224, 224, 3)


def test_numpy_grayscale_input():
    pre = ImagePreprocessor(size=224)
    arr = np.random.RandomState(0).randint(0, 255, size=(40, 60), dtype=np.uint8)
    assert pre.preprocess(arr).shape == (1, 224, 224, 3)


def test_unit_normalization_range():
    pre = ImagePreprocessor(size=8, normalization="unit")
    white = pre.preprocess(Image.new("RGB", (20, 20), (255, 255, 255)))
    black = pre.preprocess(Image.new("RGB", (20, 20), (0, 0, 0)))
    assert np.allclose(white, 1.0)
    assert np.allclose(black, 0.0)


def test_symmetric_normalization_range():
    pre = ImagePreprocessor(size=8, normalization="symmetric")
    white = pre.preprocess(Image.new("RGB", (20, 20), (255, 255, 255)))
    black = pre.preprocess(Image.new("RGB", (20, 20), (0, 0, 0)))
    assert np.allclose(white, 1.0)
    assert np.allclose(black, -1.0)


def test_unknown_normalization_rejected():
    with pytest.raises(ValueError):
        ImagePreprocessor(normalization="zscore")


def test_only_final_tensor_is_left_allocated():
    ledger = TensorLedger()
    pre = ImagePreprocessor(size=16, ledger=ledger)
    out = pre.preprocess(Image.new("RGB", (30, 30)))
    assert ledger.live == 1
    assert ledger.is_live(out)
    ledger.release(out)
    assert ledger.live == 0


def test_alpha_is_flattened_onto_black():
    transparent = Image.new("RGBA", (4, 4), (255, 255, 255, 0))
    rgb = to_rgb_image(transparent)
    assert rgb.mode == "RGB"
    assert rgb.getpixel((0, 0)) == (0, 0, 0)


def test_image_dimensions():
    assert image_dimensions(Image.new("RGB", (30, 10))) == (30, 10)
    assert image_dimensions(np.zeros((10, 30, 3))) == (30, 10)
    assert image_dimensions(object()) is None
