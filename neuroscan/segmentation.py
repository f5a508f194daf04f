import numpy as np
from PIL import Image

# ----------------------------
# Class table
# ----------------------------
# Index order matches the model head: 0 is background / no tumour.
TUMOR_CLASSES = ["No Tumor", "Meningioma", "Glioma", "Pituitary"]
NO_TUMOR = TUMOR_CLASSES[0]
UNKNOWN = "Unknown"

# Shared by the mock generator and the real segmentation path.
CLASS_COLORS = {
    "No Tumor": (0, 0, 0, 0),
    "Meningioma": (255, 0, 0, 128),
    "Glioma": (0, 255, 0, 128),
    "Pituitary": (0, 0, 255, 128),
}
TRANSPARENT = (0, 0, 0, 0)


def label_for_index(index):
    """Map a class index to its label; anything out of range is Unknown."""
    index = int(index)
    if 0 <= index < len(TUMOR_CLASSES):
        return TUMOR_CLASSES[index]
    return UNKNOWN


def is_tumor(label):
    return label in CLASS_COLORS and label != NO_TUMOR


def palette_array():
    """RGBA lookup table indexed by class id, shape (num_classes, 4)."""
    return np.array([CLASS_COLORS[name] for name in TUMOR_CLASSES], dtype=np.uint8)


def colorize(class_map):
    """
    Turn a per-pixel class index map into an RGBA overlay.
    Args:
        class_map: integer array (H, W) or (1, H, W)
    Returns:
        PIL RGBA image of size (W, H); background and unknown ids are transparent
    """
    class_map = np.asarray(class_map)
    if class_map.ndim == 3 and class_map.shape[0] == 1:
        class_map = class_map[0]
    if class_map.ndim != 2:
        raise ValueError(f"Expected a 2-D class map, got shape {class_map.shape}")

    palette = palette_array()
    ids = class_map.astype(np.int64)
    valid = (ids >= 0) & (ids < len(palette))

    rgba = np.zeros(ids.shape + (4,), dtype=np.uint8)
    rgba[valid] = palette[ids[valid]]
    return Image.fromarray(rgba)


def circle_mask(width, height, label):
    """Filled circle centred in the frame, radius min(w, h) / 4."""
    color = CLASS_COLORS.get(label, TRANSPARENT)
    cx, cy = width / 2, height / 2
    radius = min(width, height) / 4

    ys, xs = np.mgrid[0:height, 0:width]
    inside = (xs - cx) ** 2 + (ys - cy) ** 2 < radius ** 2

    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    rgba[inside] = color
    return Image.fromarray(rgba)
