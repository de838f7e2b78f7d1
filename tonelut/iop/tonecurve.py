"""
tonecurve - A Python implementation of the tonecurve IOP.

The curve is sampled once into a 65536-entry Look-Up Table (0xffff range) and
applied either per channel or with the hue-preserving RGB method used by
Adobe's reference tone curve, which maps the largest and smallest channel
through the curve and places the middle one proportionally between them.
"""

import logging
from typing import Sequence, Tuple

import numpy as np
from numba import njit

from tonelut.core.curves import CurveModel
from tonelut.core.datatypes import CurveKind, InvalidDataError, ToneCurveParams
from tonelut.core.lut import FastLookupTable, lut_lookup

logger = logging.getLogger(__name__)

LUT_SIZE = 65536
LUT_SCALE = 65535.0


# ---------- RGB tone kernels ---------- #
@njit(error_model="numpy")
def _rgb_tone(data, max_fractional, upper_bound, maxval, medval, minval):
    """Map max and min through the LUT, keep med at the same relative position."""
    new_max = lut_lookup(data, max_fractional, upper_bound, maxval)
    new_min = lut_lookup(data, max_fractional, upper_bound, minval)
    new_med = new_min + ((new_max - new_min) * (medval - minval) / (maxval - minval))
    return new_max, new_med, new_min


@njit(error_model="numpy")
def _apply_rgb_tone(data, max_fractional, upper_bound, ir, ig, ib):
    # argument order sends NaN to the top of the range
    r = max(0.0, min(LUT_SCALE, ir))
    g = max(0.0, min(LUT_SCALE, ig))
    b = max(0.0, min(LUT_SCALE, ib))

    if r >= g:
        if g > b:
            # r >= g > b
            nr, ng, nb = _rgb_tone(data, max_fractional, upper_bound, r, g, b)
        elif b > r:
            # b > r >= g
            nb, nr, ng = _rgb_tone(data, max_fractional, upper_bound, b, r, g)
        elif b > g:
            # r >= b > g
            nr, nb, ng = _rgb_tone(data, max_fractional, upper_bound, r, b, g)
        else:
            # r >= g == b, r == g == b in the usual case
            nr = lut_lookup(data, max_fractional, upper_bound, r)
            ng = lut_lookup(data, max_fractional, upper_bound, g)
            nb = ng
    else:
        if r >= b:
            # g > r >= b
            ng, nr, nb = _rgb_tone(data, max_fractional, upper_bound, g, r, b)
        elif b > g:
            # b > g > r
            nb, ng, nr = _rgb_tone(data, max_fractional, upper_bound, b, g, r)
        else:
            # g >= b > r
            ng, nb, nr = _rgb_tone(data, max_fractional, upper_bound, g, b, r)

    # commit unless every input was out of gamut
    if (not (ir < 0.0 or ir > LUT_SCALE)) or (not (ig < 0.0 or ig > LUT_SCALE)) \
            or (not (ib < 0.0 or ib > LUT_SCALE)):
        return nr, ng, nb
    return r, g, b


@njit(error_model="numpy")
def _apply_rgb_tone_rows(data, max_fractional, upper_bound, rgb, out):
    for i in range(rgb.shape[0]):
        r, g, b = _apply_rgb_tone(data, max_fractional, upper_bound, rgb[i, 0], rgb[i, 1], rgb[i, 2])
        out[i, 0] = r
        out[i, 1] = g
        out[i, 2] = b
    return out


# ---------- LUT builders ---------- #
class ToneCurve:
    """
    Holds a 65536-entry tone LUT sampled from a curve, values in 0..65535.

    A built table is never modified again; build() publishes a new table, so
    readers holding the previous one are unaffected.
    """

    def __init__(self):
        self.lut = FastLookupTable()

    def reset(self) -> None:
        self.lut.reset()

    def build(self, curve: CurveModel, gamma: float = 0.0) -> FastLookupTable:
        """
        Fills a new LUT with curve values for x in [0, 1], ranged 0xffff.

        Args:
            curve (CurveModel): The curve to sample.
            gamma (float): Only gamma <= 0 or gamma == 1 samples the curve; for any
                           other value the table stays all zero.

        Returns:
            FastLookupTable: The published table.
        """
        lut = FastLookupTable(LUT_SIZE)

        if gamma <= 0.0 or gamma == 1.0:
            ts = np.arange(LUT_SIZE, dtype=np.float64) / LUT_SCALE
            lut.values[:] = curve.get_vals(ts) * LUT_SCALE
            logger.debug("Tone LUT built from %r", curve)
        else:
            logger.debug("Tone LUT left unbuilt for gamma=%s", gamma)

        self.lut = lut
        return lut

    def lookup(self, values: np.ndarray) -> np.ndarray:
        """Per-channel LUT lookup of values in the 0..65535 domain."""
        return self.lut.lookup_array(values)


class HuePreservingToneCurve(ToneCurve):
    """
    Tone curve applied to RGB triples in 0xffff space while keeping the
    channel ordering, and therefore the hue, of each triple.
    """

    def _kernel_args(self):
        lut = self.lut
        return lut._buffer(), lut.max_fractional, lut.upper_bound

    def apply(self, r: float, g: float, b: float) -> Tuple[float, float, float]:
        """
        Maps one RGB triple through the LUT.

        Each input is clamped to [0, 65535] first. If all three inputs were out
        of range the clamped, unmapped triple is returned.
        """
        nr, ng, nb = _apply_rgb_tone(*self._kernel_args(), float(r), float(g), float(b))
        return float(nr), float(ng), float(nb)

    def apply_array(self, rgb: np.ndarray) -> np.ndarray:
        """apply() over an (..., 3) array, returns float32 of the same shape."""
        rgb = np.asarray(rgb)
        if rgb.shape[-1] != 3:
            raise InvalidDataError(f"Expected RGB data with a trailing axis of 3, got shape {rgb.shape}")
        flat = np.ascontiguousarray(rgb.reshape(-1, 3), dtype=np.float64)
        out = np.empty_like(flat)
        _apply_rgb_tone_rows(*self._kernel_args(), flat, out)
        return out.reshape(rgb.shape).astype(np.float32)


# ---------- IOP ---------- #
class Tonecurve:
    """
    A class-based representation of the tone curve module.

    The curve is interpolated from a few control points (natural cubic spline
    or linear) and sampled into a Look-Up Table (LUT) on initialisation,
    mimicking darktable's approach.
    """
    def __init__(self,
                 control_points_x: Sequence[float],
                 control_points_y: Sequence[float],
                 kind="spline",
                 gamma: float = 0.0,
                 ppn: int = 1000,
                 preserve_hue: bool = True,
                 enabled: bool = True):
        """
        Initializes the ToneCurve module.

        Args:
            control_points_x (list): x-coordinates of the control points (e.g., [0, 0.25, 0.75, 1]),
                                     normalized between 0.0 and 1.0 and strictly increasing.
            control_points_y (list): y-coordinates of the control points (e.g., [0, 0.2, 0.8, 1]),
                                     normalized between 0.0 and 1.0.
            kind (str | int | CurveKind): 'spline' or 'linear'.
            gamma (float): Passed to the LUT builder; only 0 and 1 produce a curve.
            ppn (int): Targeted polyline point number of the curve.
            preserve_hue (bool): Apply the curve with the hue-preserving RGB method
                                 instead of per channel.
            enabled (bool): When False, process() returns the image untouched.
        """
        self.params = ToneCurveParams(kind=kind,
                                      control_points_x=list(control_points_x),
                                      control_points_y=list(control_points_y),
                                      gamma=gamma,
                                      ppn=ppn,
                                      preserve_hue=preserve_hue,
                                      enabled=enabled)
        self.curve = CurveModel(self.params.to_points(), ppn=self.params.ppn)
        self.tone_curve = HuePreservingToneCurve()

        logger.info("Creating Tone Curve LUT (%s, %d points)...",
                    self.curve.kind.name.lower(), len(self.params.control_points_x))
        self.tone_curve.build(self.curve, self.params.gamma)

    @classmethod
    def from_params(cls, params: ToneCurveParams) -> "Tonecurve":
        return cls(params.control_points_x,
                   params.control_points_y,
                   kind=params.kind,
                   gamma=params.gamma,
                   ppn=params.ppn,
                   preserve_hue=params.preserve_hue,
                   enabled=params.enabled)

    @property
    def kind(self) -> CurveKind:
        return self.curve.kind

    @property
    def lut(self) -> FastLookupTable:
        return self.tone_curve.lut

    def process(self, image_data: np.ndarray) -> np.ndarray:
        """
        Applies the tone curve to the image data using the pre-computed LUT.

        Args:
            image_data (np.ndarray): The input image data, expected to be float
                                     and normalized between 0.0 and 1.0. With
                                     preserve_hue the last axis must hold at
                                     least 3 channels; extra channels pass through.

        Returns:
            np.ndarray: The processed image data as float32, or image_data
                        itself when the module is disabled.
        """
        if not self.params.enabled:
            logger.info("Tone curve disabled, image passed through")
            return image_data

        if not np.issubdtype(image_data.dtype, np.floating):
            raise InvalidDataError("Input image data must be of float type for processing.")

        if image_data.size and (image_data.max() > 1.0 or image_data.min() < 0.0):
            logger.warning("Input image data is not normalized to [0, 1]. Out of range values are clamped.")

        scaled = image_data.astype(np.float64) * LUT_SCALE

        if not self.params.preserve_hue:
            return (self.tone_curve.lookup(scaled) / LUT_SCALE).astype(np.float32)

        if image_data.ndim < 2 or image_data.shape[-1] < 3:
            raise InvalidDataError(
                f"Hue preserving tone curve needs at least 3 channels, got shape {image_data.shape}"
            )

        processed_image = image_data.astype(np.float32)
        rgb = self.tone_curve.apply_array(scaled[..., :3])
        processed_image[..., :3] = rgb / LUT_SCALE
        return processed_image
