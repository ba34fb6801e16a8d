"""
DC voltage divider.

Circuit:
    gnd (node 0) -> Vs (12 V) -> node 1 -> R1 (1 kΩ) -> node 2 -> R2 (2 kΩ) -> gnd.

Expected: V1 = 12 V, V2 = 12 * 2 / 3 = 8 V, and 4 mA through both resistors.
"""

import sys
from pathlib import Path

project_root = Path(__file__).resolve().parents[2]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from nodalsim.network.study import NodalAnalysisStudy
from nodalsim.components.dc_circuits import resistor, voltage_source


def main() -> None:
    study = NodalAnalysisStudy("dc_circuit")
    gnd, n1, n2 = study.add_nodes(3)
    study.ground_node(gnd)
    built = study.configure()

    vs = built.add_element(voltage_source, gnd, n1, 12.0)
    r1 = built.add_element(resistor, n1, n2, 1000.0)
    r2 = built.add_element("resistor", n2, gnd, 2000.0)

    result = built.solve(margin=1e-9)

    print(f"V1 = {result.potential(n1)[0]:.3f} V")
    print(f"V2 = {result.potential(n2)[0]:.3f} V")
    print(f"I_Vs = {result.flux(vs)[0] * 1e3:.3f} mA")
    print(f"I_R1 = {result.flux(r1)[0] * 1e3:.3f} mA")
    print(f"I_R2 = {result.flux(r2)[0] * 1e3:.3f} mA")


if __name__ == "__main__":
    main()
