from tensorflow.keras.applications import MobileNetV2
from tensorflow.keras.layers import GlobalAveragePooling2D, Dense
from tensorflow.keras.models import Model
from tensorflow.keras.optimizers import Adam

from neuroscan.config import DEFAULT_MODEL_PATH, IMG_SIZE
from neuroscan.segmentation import TUMOR_CLASSES

DEFAULT_MODEL_PATH.parent.mkdir(parents=True, exist_ok=True)

# Untrained head: predictions are meaningless until fine-tuned,
# but the full real-model path (load, warm-up, inference) can be exercised.
base = MobileNetV2(
    weights="imagenet",
    include_top=False,
    input_shape=(IMG_SIZE, IMG_SIZE, 3)
)
base.trainable = False

x = GlobalAveragePooling2D()(base.output)
output = Dense(len(TUMOR_CLASSES), activation="softmax")(x)

model = Model(base.input, output)
model.compile(
    optimizer=Adam(1e-4),
    loss="categorical_crossentropy",
    metrics=["accuracy"]
)

model.save(DEFAULT_MODEL_PATH)

print(f"✅ Bootstrap model saved to {DEFAULT_MODEL_PATH}")
print("   Serve it with NEUROSCAN_NORMALIZATION=symmetric (MobileNetV2 expects [-1, 1] inputs).")
