"""
Print Preflight Demo Script.
Builds a sample document for every print-spec preset, runs preflight and
renders each page into instance/preflight_demo_output.
"""
import os
import sys
import shutil

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.printing.document import Document, Page, ShapeElement, TextElement
from services.printing.pipeline import export_page
from services.specs import PRINT_SPEC_PRESETS
from utils.print_preflight import PreflightError
from utils.storage import LocalStorage


def sample_document(spec):
    pages = []
    for side in spec.sides:
        bleed = side.bleed_mm
        pages.append(Page(id=side.id, name=side.label, elements=(
            # Background through the bleed on every edge
            ShapeElement(id=f"{side.id}-bg", kind="rect", fill="#f4efe6",
                         x_mm=-bleed, y_mm=-bleed,
                         w_mm=side.trim_mm.w + 2 * bleed, h_mm=side.trim_mm.h + 2 * bleed),
            ShapeElement(id=f"{side.id}-border", kind="border",
                         x_mm=side.safe_mm, y_mm=side.safe_mm,
                         w_mm=side.trim_mm.w - 2 * side.safe_mm, h_mm=side.trim_mm.h - 2 * side.safe_mm),
            TextElement(id=f"{side.id}-title", text=f"{side.label} preflight sample", font_size_pt=14,
                        x_mm=side.safe_mm + 4, y_mm=side.safe_mm + 4,
                        w_mm=side.trim_mm.w - 2 * side.safe_mm - 8, h_mm=12),
        )))
    return Document(print_spec=spec, pages=tuple(pages))


def main():
    print("=" * 60)
    print("Running Print Preflight Demo")
    print("=" * 60)

    out_dir = os.path.join(os.path.dirname(__file__), "..", "instance", "preflight_demo_output")
    if os.path.exists(out_dir):
        shutil.rmtree(out_dir)
    os.makedirs(out_dir, exist_ok=True)
    storage = LocalStorage(out_dir)

    print(f"Output directory: {out_dir}")
    print()

    results = {}

    for spec_id, spec in PRINT_SPEC_PRESETS.items():
        document = sample_document(spec)
        for side in spec.sides:
            label = f"{spec_id}/{side.id}"
            print(f"Testing {label}...")
            try:
                # 100dpi keeps the poster preset quick
                result = export_page(document, side.id, dpi=100, storage=storage, persist=True)
                print(f"  [PASS] {result.path} ({len(result.warnings)} warnings)")
                results[label] = "PASS"
            except PreflightError as e:
                print(f"  [FAIL] Preflight failed: {e}")
                results[label] = f"FAIL: {e}"

    print("-" * 60)
    print("Summary:")
    for label, res in results.items():
        print(f"  {label}: {res}")
    print("-" * 60)

    if any("FAIL" in res for res in results.values()):
        print("Some checks FAILED.")
        sys.exit(1)
    else:
        print("All checks PASSED.")
        sys.exit(0)


if __name__ == "__main__":
    main()
