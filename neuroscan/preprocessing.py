import numpy as np
from PIL import Image, ImageOps

from neuroscan.config import IMG_SIZE, NORMALIZATION_RANGES
from neuroscan.tensors import TensorLedger, TensorScope


def to_rgb_image(image):
    """Project any decoded raster (PIL image or array) onto 3-channel RGB."""
    if isinstance(image, Image.Image):
        if image.mode == "RGB":
            return image
        if image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info):
            # Flatten transparency onto black, the MRI background.
            rgba = image.convert("RGBA")
            background = Image.new("RGBA", rgba.size, (0, 0, 0, 255))
            return Image.alpha_composite(background, rgba).convert("RGB")
        if image.mode in ("I", "I;16", "F"):
            arr = np.asarray(image, dtype=np.float32)
            return Image.fromarray(_stretch_to_uint8(arr)).convert("RGB")
        return image.convert("RGB")

    arr = np.asarray(image)
    if arr.ndim == 3 and arr.shape[-1] == 1:
        arr = arr[..., 0]
    if arr.ndim == 3 and arr.shape[-1] == 4:
        arr = arr[..., :3]
    if arr.ndim not in (2, 3) or (arr.ndim == 3 and arr.shape[-1] != 3):
        raise ValueError(f"Unsupported image array shape {arr.shape}")
    if arr.dtype != np.uint8:
        arr = _stretch_to_uint8(arr.astype(np.float32))
    return Image.fromarray(arr).convert("RGB")


def image_dimensions(image):
    """(width, height) of a PIL image or H x W[x C] array, or None."""
    if isinstance(image, Image.Image):
        return image.size
    shape = getattr(image, "shape", None)
    if shape is not None and len(shape) >= 2:
        return (int(shape[1]), int(shape[0]))
    return None


def _stretch_to_uint8(arr):
    lo, hi = float(np.min(arr)), float(np.max(arr))
    if hi <= lo:
        return np.zeros(arr.shape, dtype=np.uint8)
    return np.uint8(255 * (arr - lo) / (hi - lo))


def load_image_with_orientation(fp):
    """Decode an image and apply its EXIF rotation (mobile uploads)."""
    img = Image.open(fp)
    img.load()
    return ImageOps.exif_transpose(img)


class ImagePreprocessor:
    """Resize + normalize images into the (1, S, S, 3) float tensor the model expects."""

    def __init__(self, size=IMG_SIZE, normalization="unit", ledger=None):
        if normalization not in NORMALIZATION_RANGES:
            raise ValueError(f"Unknown normalization {normalization!r}")
        self.size = size
        self.normalization = normalization
        self.ledger = ledger or TensorLedger()

    @property
    def input_shape(self):
        return (1, self.size, self.size, 3)

    def preprocess(self, image):
        rgb = to_rgb_image(image)
        resized = rgb.resize((self.size, self.size), Image.BILINEAR)

        with TensorScope(self.ledger) as scope:
            pixels = scope.track(np.asarray(resized, dtype=np.float32))
            normalized = scope.track(self._normalize(pixels))
            batch = scope.keep(scope.track(np.expand_dims(normalized, axis=0)))
        return batch

    def _normalize(self, pixels):
        lo, hi = NORMALIZATION_RANGES[self.normalization]
        # pixels are in [0, 255]
        return (pixels / 255.0 * (hi - lo) + lo).astype(np.float32)
