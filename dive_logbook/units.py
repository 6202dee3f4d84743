"""
Canonical unit model and pure conversion functions.

Canonical units used throughout the dive model:
- depth / altitude: meters
- temperature: degrees Celsius
- pressure: bar
- gas volume: liters
- consumption: liters/minute (RMV) and bar/minute (SAC)
- ascent rate: meters/second

No rounding is performed here; rounding belongs to whoever displays values.
"""

FEET_PER_METER = 3.280839895
PSI_PER_BAR = 14.5037738
CUFT_PER_LITER = 0.0353146667
LB_PER_KG = 2.2046226218
KELVIN_OFFSET = 273.15


def meters_to_feet(m: float) -> float:
    return m * FEET_PER_METER


def feet_to_meters(ft: float) -> float:
    return ft / FEET_PER_METER


def celsius_to_fahrenheit(c: float) -> float:
    return c * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(f: float) -> float:
    return (f - 32.0) * 5.0 / 9.0


def kelvin_to_celsius(k: float) -> float:
    return k - KELVIN_OFFSET


def bar_to_psi(bar: float) -> float:
    return bar * PSI_PER_BAR


def psi_to_bar(psi: float) -> float:
    return psi / PSI_PER_BAR


def kpa_to_bar(kpa: float) -> float:
    return kpa / 100.0


def pascal_to_bar(pa: float) -> float:
    return pa / 100_000.0


def mbar_to_bar(mbar: float) -> float:
    return mbar / 1_000.0


def liters_to_cuft(liters: float) -> float:
    return liters * CUFT_PER_LITER


def cuft_to_liters(cuft: float) -> float:
    return cuft / CUFT_PER_LITER


def kg_to_lb(kg: float) -> float:
    return kg * LB_PER_KG


def lb_to_kg(lb: float) -> float:
    return lb / LB_PER_KG


def feet_per_second_to_mps(fps: float) -> float:
    return feet_to_meters(fps)


def feet_per_minute_to_mps(fpm: float) -> float:
    return feet_to_meters(fpm) / 60.0


def meters_per_minute_to_mps(mpm: float) -> float:
    return mpm / 60.0


def ambient_pressure_ata(depth_m: float) -> float:
    """Ambient pressure in standard atmospheres at a salt-water depth (1 atm per 10 m)."""
    return 1.0 + depth_m / 10.0
