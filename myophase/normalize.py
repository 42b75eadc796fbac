"""Reference-value normalization of EMG streams.

Every sample of channel ``c`` is divided by the reference value of
``c``, typically a maximal voluntary contraction level.  Both operands
carry the same scaling factor, so the result is a plain ratio.

Functions
---------
normalize
    Divide a stream by per-channel reference values.
validate_reference
    Check a reference against the stream it will divide.
"""

import logging
from typing import Union

import numpy as np

from .errors import DivisionByZeroError, InputValidationError, InsufficientDataError
from .schema import EMGStream, ReferenceValues

logger = logging.getLogger(__name__)

Reference = Union[ReferenceValues, EMGStream]


def _reference_row(reference: Reference) -> np.ndarray:
    if isinstance(reference, EMGStream):
        if reference.n_samples == 0:
            raise InsufficientDataError("reference stream has no samples", field="reference")
        return np.asarray(reference.values[0])
    return np.asarray(reference.values)


def validate_reference(stream: EMGStream, reference: Reference) -> np.ndarray:
    """Return the divisor row after checking it against ``stream``.

    Raises
    ------
    InsufficientDataError
        If either operand is empty.
    InputValidationError
        If channel counts or scaling factors differ.
    DivisionByZeroError
        If a reference value is zero (``channel`` is 1-based).
    """
    if stream.n_samples == 0:
        raise InsufficientDataError("stream has no samples", field="time")
    ref = _reference_row(reference)
    if len(ref) != stream.n_channels:
        raise InputValidationError(
            f"stream has {stream.n_channels} channels but reference has {len(ref)}",
            field="channels",
        )
    if reference.scaling_factor != stream.scaling_factor:
        raise InputValidationError(
            f"scaling factors differ (stream {stream.scaling_factor}, "
            f"reference {reference.scaling_factor})",
            field="scaling_factor",
        )
    zero = np.nonzero(ref == 0)[0]
    if len(zero):
        channel = int(zero[0]) + 1
        raise DivisionByZeroError(
            f"reference value at channel {channel} is zero", field="reference", channel=channel
        )
    return ref


def normalize(stream: EMGStream, reference: Reference) -> EMGStream:
    """Divide every sample of ``stream`` by the reference of its channel.

    Time, header order and the original time precision are carried over
    from ``stream``.
    """
    ref = validate_reference(stream, reference)
    logger.info(f"Normalizing {stream.n_samples} samples x {stream.n_channels} channels")
    logger.debug(f"Reference values: {ref.tolist()}")
    return EMGStream(
        time=stream.time,
        values=np.asarray(stream.values) / ref,
        channels=stream.channels,
        time_column=stream.time_column,
        time_precision=stream.time_precision,
        scaling_factor=stream.scaling_factor,
    )
