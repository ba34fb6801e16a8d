"""
Steady heat loss through a composite wall.

Layers (inside -> outside):
    room air 20 °C | h = 8 W/m²K | brick 0.2 m, k = 0.7 W/mK | insulation 0.05 m,
    k = 0.04 W/mK | h = 25 W/m²K | outdoor air -5 °C

The total resistance per unit area is 1/8 + 0.2/0.7 + 0.05/0.04 + 1/25 ≈ 1.70 m²K/W,
so about 14.7 W/m² leaves through the wall. The script prints every surface
temperature and, if Matplotlib is available, plots the temperature profile.
"""

import sys
from pathlib import Path

project_root = Path(__file__).resolve().parents[2]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from nodalsim.network.model import NodalAnalysisModel


MODEL = {
    "model_type": "heat_transfer",
    "nodes": 5,
    "configuration": {
        "0": {"potential": [20.0], "is_locked": True, "metadata": {"x": -0.05}},
        "1": {"potential": [15.0], "is_locked": False, "metadata": {"x": 0.0}},
        "2": {"potential": [10.0], "is_locked": False, "metadata": {"x": 0.2}},
        "3": {"potential": [0.0], "is_locked": False, "metadata": {"x": 0.25}},
        "4": {"potential": [-5.0], "is_locked": True, "metadata": {"x": 0.3}},
    },
    "elements": [
        {"element_type": "convection_interface", "input": 0, "output": 1, "gain": [8.0]},
        {"element_type": "conductor", "input": 1, "output": 2, "gain": [0.2, 0.7]},
        {"element_type": "conductor", "input": 2, "output": 3, "gain": [0.05, 0.04]},
        {"element_type": "convection_interface", "input": 3, "output": 4, "gain": [25.0]},
    ],
}


def main() -> None:
    model = NodalAnalysisModel.from_dict(MODEL)
    result = model.run_study(margin=1e-8)

    xs = [model.configuration[i].metadata["x"] for i in range(model.nodes)]
    temps = [result.potential(i)[0] for i in range(model.nodes)]
    for i, (x, t) in enumerate(zip(xs, temps)):
        print(f"node {i} (x = {x:+.2f} m): {t:7.2f} °C")
    print(f"Heat loss: {result.flux(0)[0]:.2f} W/m²")

    try:
        import matplotlib.pyplot as plt

        fig, ax = plt.subplots(figsize=(7, 4))
        ax.plot(xs, temps, marker="o", color="tab:red")
        for boundary in xs[1:-1]:
            ax.axvline(boundary, color="0.7", linestyle="--", linewidth=0.8)
        ax.set_xlabel("Position [m]")
        ax.set_ylabel("Temperature [°C]")
        ax.set_title("Composite wall temperature profile")
        ax.grid(True)
        fig.tight_layout()
        plt.show()
    except ImportError:
        pass


if __name__ == "__main__":
    main()
