"""Generate JSON schemas for the catalog and report models into schemas/."""

import json
import sys
from pathlib import Path

from upgrade_gate.contracts import RiskReport
from upgrade_gate.kernel.catalog import Catalog

SCHEMAS = {
    "upgrade_catalog.schema.json": Catalog,
    "risk_report.schema.json": RiskReport,
}


def generate_schemas(schemas_dir=None):
    """Write one schema file per model and return the written paths."""
    if schemas_dir is None:
        schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir = Path(schemas_dir)
    schemas_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for filename, model in SCHEMAS.items():
        path = schemas_dir / filename
        with open(path, "w", encoding="utf-8") as f:
            json.dump(model.model_json_schema(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        print(f"Generated: {path}")
        written.append(path)
    return written


if __name__ == "__main__":
    generate_schemas(sys.argv[1] if len(sys.argv) > 1 else None)
