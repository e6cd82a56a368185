"""
Image utilities for page signatures.

Provides:
- Grayscale conversion
- Difference hash (dHash) page signatures
- Hamming distance between signatures
"""

import logging
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def dhash(image: np.ndarray, hash_size: int = 8) -> str:
    """
    Compute a difference hash of a page image.

    The image is shrunk to (hash_size + 1) x hash_size and each bit records
    whether a pixel is brighter than its right neighbour.

    Args:
        image: Page image (color or grayscale)
        hash_size: Side length of the bit grid (hash has hash_size**2 bits)

    Returns:
        Hex string of hash_size**2 bits
    """
    import cv2

    if image is None or image.size == 0:
        raise ValueError("Cannot hash an empty image")

    gray = to_grayscale(image)
    resized = cv2.resize(gray, (hash_size + 1, hash_size), interpolation=cv2.INTER_AREA)
    diff = resized[:, 1:] > resized[:, :-1]

    value = 0
    for bit in diff.flatten():
        value = (value << 1) | int(bit)
    width = (hash_size * hash_size + 3) // 4
    return f"{value:0{width}x}"


def hamming_distance(a: Optional[str], b: Optional[str]) -> int:
    """Number of differing bits between two hex signatures."""
    if not a or not b:
        raise ValueError("Both signatures are required")
    if len(a) != len(b):
        raise ValueError(f"Signature lengths differ: {len(a)} != {len(b)}")
    return bin(int(a, 16) ^ int(b, 16)).count("1")


def signatures_for(images: List[np.ndarray], hash_size: int = 8) -> List[str]:
    """Hash a list of page images in order."""
    signatures = []
    for i, image in enumerate(images):
        signatures.append(dhash(image, hash_size=hash_size))
        logger.debug(f"Page {i} signature {signatures[-1]}")
    return signatures
