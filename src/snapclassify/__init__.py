"""SnapClassify: pick an image, classify it with a bundled ResNet-50."""

__version__ = "0.1.0"
