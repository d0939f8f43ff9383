import numpy as np

from binbow.errors import DimensionMismatch

DESCRIPTOR_BYTES = 32
DESCRIPTOR_BITS = DESCRIPTOR_BYTES * 8

# Rows per block in hamming_matrix, keeps the (rows, centroids, 4) XOR buffer small
_CHUNK_ROWS = 1 << 15


def as_descriptors(data, stage="input", index=None) -> np.ndarray:
    """
    Coerce incoming descriptors into a contiguous (N, 32) uint8 array.

    Accepts packed byte arrays of shape (N, 32) or (32,), boolean bit arrays
    of shape (N, 256) or (256,), a single ``bytes`` object or a sequence of
    them. Anything that is not exactly 256 bits per descriptor is rejected,
    never truncated or padded.

    Args:
        data: Descriptor(s) in one of the accepted forms
        stage: Pipeline stage reported in errors
        index: Input index reported in errors (e.g. training image number)

    Returns:
        np.ndarray of shape (N, 32), dtype uint8
    """
    if isinstance(data, (bytes, bytearray)):
        data = [data]
    if isinstance(data, (list, tuple)) and data and isinstance(data[0], (bytes, bytearray)):
        if any(len(d) != DESCRIPTOR_BYTES for d in data):
            raise DimensionMismatch(
                f"Descriptors must be {DESCRIPTOR_BYTES} bytes long", stage=stage, index=index
            )
        data = np.frombuffer(b"".join(bytes(d) for d in data), dtype=np.uint8)
        return data.reshape(-1, DESCRIPTOR_BYTES).copy()

    try:
        arr = np.asarray(data)
    except ValueError as e:
        raise DimensionMismatch(
            f"Descriptors have unequal lengths: {e}", stage=stage, index=index
        ) from e
    if arr.size == 0 and arr.ndim <= 2:
        # Only a fully empty (0, 0) array may omit the row width
        if arr.ndim == 2 and arr.shape[1] not in (DESCRIPTOR_BYTES, DESCRIPTOR_BITS) \
                and arr.shape != (0, 0):
            raise DimensionMismatch(
                f"Expected {DESCRIPTOR_BITS}-bit descriptors, got rows of width {arr.shape[1]}",
                stage=stage,
                index=index,
            )
        return np.empty((0, DESCRIPTOR_BYTES), dtype=np.uint8)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    if arr.ndim != 2:
        raise DimensionMismatch(
            f"Expected a 2-D descriptor array, got shape {arr.shape}", stage=stage, index=index
        )

    if arr.dtype == np.bool_:
        if arr.shape[1] != DESCRIPTOR_BITS:
            raise DimensionMismatch(
                f"Expected {DESCRIPTOR_BITS} bits per descriptor, got {arr.shape[1]}",
                stage=stage,
                index=index,
            )
        return np.ascontiguousarray(np.packbits(arr, axis=1))

    if not np.issubdtype(arr.dtype, np.integer):
        raise DimensionMismatch(
            f"Descriptors must be integer bytes or booleans, got dtype {arr.dtype}",
            stage=stage,
            index=index,
        )
    if arr.shape[1] != DESCRIPTOR_BYTES:
        raise DimensionMismatch(
            f"Expected {DESCRIPTOR_BYTES} bytes per descriptor, got {arr.shape[1]}",
            stage=stage,
            index=index,
        )
    if arr.dtype != np.uint8:
        if arr.min() < 0 or arr.max() > 255:
            raise DimensionMismatch(
                "Descriptor byte values must lie in [0, 255]", stage=stage, index=index
            )
        arr = arr.astype(np.uint8)
    return np.ascontiguousarray(arr)


def _as_words(descriptors):
    # (N, 32) uint8 -> (N, 4) uint64
    return np.ascontiguousarray(descriptors).view(np.uint64)


def hamming(a, b) -> int:
    """Number of differing bits between two descriptors."""
    a = as_descriptors(a, stage="hamming")
    b = as_descriptors(b, stage="hamming")
    if len(a) != 1 or len(b) != 1:
        raise DimensionMismatch("hamming() compares exactly two descriptors", stage="hamming")
    return int(np.bitwise_count(_as_words(a) ^ _as_words(b)).sum())


def hamming_matrix(descriptors, centroids) -> np.ndarray:
    """
    Pairwise Hamming distances.

    Both inputs must already be validated (N, 32) / (C, 32) uint8 arrays.

    Returns:
        np.ndarray of shape (N, C), dtype int64
    """
    words = _as_words(descriptors)
    centre_words = _as_words(centroids)
    out = np.empty((len(words), len(centre_words)), dtype=np.int64)
    for start in range(0, len(words), _CHUNK_ROWS):
        block = words[start:start + _CHUNK_ROWS, None, :] ^ centre_words[None, :, :]
        out[start:start + _CHUNK_ROWS] = np.bitwise_count(block).sum(axis=2, dtype=np.int64)
    return out


def majority_centroid(descriptors) -> np.ndarray:
    """
    Bitwise majority vote over a non-empty descriptor set.

    Bit i is set iff strictly more than half of the descriptors have it set,
    so an even split resolves to 0.
    """
    bits = np.unpackbits(descriptors, axis=1)
    counts = bits.sum(axis=0, dtype=np.int64)
    return np.packbits(counts * 2 > len(descriptors))
