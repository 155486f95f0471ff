from typing import Optional

# Average number of puffs drawn from one ml of e-liquid
PUFFS_PER_ML = 200


def estimate_mg(source: Optional[str], quantity: Optional[float], strength: Optional[float]) -> float:
    """
    Estimate the nicotine dose in mg for one intake.

    - Vape: quantity is puffs and strength is mg/ml.
    - Cigarettes: quantity is cigarettes and strength is mg per cigarette.
    - Snus: quantity is portions and strength is mg per portion.

    Missing or non-positive input, or an unknown source, yields 0.
    """
    if not quantity or quantity <= 0:
        return 0
    if not strength or strength <= 0:
        return 0

    if source == "Vape":
        return (strength / PUFFS_PER_ML) * quantity
    if source in ("Cigarettes", "Snus"):
        return strength * quantity
    return 0
