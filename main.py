import argparse
import os
from pathlib import Path
from concurrent.futures import ProcessPoolExecutor, as_completed

import cv2
from tqdm import tqdm

from facewarp.config import load_and_merge, section
from facewarp.utils import setup_logging
from facewarp.loader import ImageLoader
from facewarp.facemesh import FaceMeshDetector, FaceMeshConfig
from facewarp.compositor import Compositor
from facewarp.transforms import feature_bbox
from facewarp.validator import validate_detection
from facewarp.writers import ResultsWriter, build_record


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Landmark-driven eye and jaw warping")
    # Single-image mode
    p.add_argument("--image", help="Path to a single image (PNG/JPG)")
    p.add_argument("--output", default=None, help="Where to write the modified image (single-image mode)")
    p.add_argument("--save-debug", default=None, help="Optional path to save landmark debug overlay (single-image mode)")
    # Scales
    p.add_argument("--eye-scale", type=float, default=None, help="Eye enlargement factor (0.5-2.0)")
    p.add_argument("--face-scale", type=float, default=None, help="Jaw contraction factor (0.5-2.0)")
    # Batch mode
    p.add_argument("--input-dir", help="Directory of images to process (batch mode)")
    p.add_argument("--output-dir", help="Directory to write outputs (images + JSON + summary)")
    p.add_argument("--max-files", type=int, default=None, help="Optional max files to process (for testing)")
    p.add_argument("--workers", type=int, default=None, help="Number of worker processes (0=single-thread)")
    # Config
    p.add_argument("--config", default=None, help="Optional YAML config path")
    p.add_argument("--log-level", default=None, help="Override log level (e.g., INFO, WARNING)")
    return p.parse_args()


def draw_debug(image_rgba, detection, cfg: dict, out_path: str, jawline=None):
    vis = cv2.cvtColor(image_rgba, cv2.COLOR_RGBA2BGR)
    validated = validate_detection(detection, cfg=cfg)
    for name, feature in validated.features.items():
        for x, y in feature.points:
            cv2.circle(vis, (int(x), int(y)), 1, (0, 255, 0), -1)
        if name != "jawline":
            box = feature_bbox(feature.points, cfg)
            x0, y0, x1, y1 = box.edges()
            cv2.rectangle(vis, (x0, y0), (x1 - 1, y1 - 1), (0, 0, 255), 1)
    if jawline is not None:
        for x, y in jawline.points:
            cv2.circle(vis, (int(x), int(y)), 1, (255, 0, 0), -1)
    cv2.imwrite(out_path, vis)


def process_one_path(path_str: str, cfg: dict) -> dict:
    # Local imports to ensure picklability in multiprocessing environments
    from facewarp.loader import ImageLoader
    from facewarp.facemesh import FaceMeshDetector, FaceMeshConfig
    from facewarp.compositor import Compositor
    from facewarp.errors import ProcessingFailed
    from facewarp.types import ImageMeta as IMeta, ModifyResult

    scales = section(cfg, "scales")
    loader = ImageLoader(input_dir=Path(path_str).parent)
    img, meta, err = loader.read_image(path_str)
    if err or img is None or meta is None:
        meta_fallback = meta if meta is not None else IMeta(path=str(path_str), width=0, height=0)
        error = ProcessingFailed("decode", ValueError(err or "unreadable"))
        return build_record(meta_fallback, ModifyResult(success=False, stage="failed", error=error, failed_at="init"))

    with FaceMeshDetector(FaceMeshConfig.from_cfg(cfg)) as det:
        result = Compositor(det, cfg).modify(img, scales["eye"], scales["face"])

    out_path = None
    if result.success and result.image is not None:
        writer = ResultsWriter(cfg["paths"]["output_dir"], cfg)
        out_path = writer.write_image(meta.path, result.image)
    return build_record(meta, result, output_path=out_path)


def main():
    # Reduce TF/MediaPipe verbosity if desired
    os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

    args = parse_args()

    # Build CLI overrides for config merging
    cli_overrides = {"paths": {}, "runtime": {}, "scales": {}}
    if args.input_dir:
        cli_overrides["paths"]["input_dir"] = args.input_dir
    if args.output_dir:
        cli_overrides["paths"]["output_dir"] = args.output_dir
    if args.max_files is not None:
        cli_overrides["runtime"]["max_files"] = args.max_files
    if args.workers is not None:
        cli_overrides["runtime"]["workers"] = args.workers
    if args.log_level:
        cli_overrides["runtime"]["log_level"] = args.log_level
    if args.eye_scale is not None:
        cli_overrides["scales"]["eye"] = args.eye_scale
    if args.face_scale is not None:
        cli_overrides["scales"]["face"] = args.face_scale

    cfg = load_and_merge(args.config, cli_overrides)

    setup_logging(cfg.get("runtime", {}).get("log_level", "INFO"))
    scales = section(cfg, "scales")

    # Single-image mode
    if args.image and not args.input_dir:
        loader = ImageLoader(input_dir=Path(args.image).parent)
        image, meta, err = loader.read_image(args.image)
        if err or image is None or meta is None:
            raise SystemExit(f"Failed to read image: {args.image} ({err})")

        with FaceMeshDetector(FaceMeshConfig.from_cfg(cfg)) as det:
            result = Compositor(det, cfg).modify(image, scales["eye"], scales["face"])
            detection = det.detect(image) if args.save_debug else None

        if not result.success:
            print("Modification failed:", result.reason)
            raise SystemExit(1)

        for w in result.warnings:
            print("Warning:", w)

        ext = section(cfg, "output")["ext"]
        out_path = Path(args.output) if args.output else Path(args.image).with_name(Path(args.image).stem + "_warped" + ext)
        out_path.write_bytes(result.image)
        print("Saved modified image:", out_path)

        if args.save_debug and detection is not None:
            out_debug = str(args.save_debug)
            draw_debug(image, detection, cfg, out_debug, jawline=result.jawline)
            print("Saved debug overlay:", out_debug)
        return

    # Batch mode
    input_dir = cfg.get("paths", {}).get("input_dir")
    output_dir = cfg.get("paths", {}).get("output_dir")
    if not input_dir or not output_dir:
        raise SystemExit("Batch mode requires --input-dir and --output-dir (or set in config)")

    loader = ImageLoader(input_dir=input_dir, max_files=cfg.get("runtime", {}).get("max_files"))
    paths = list(loader.enumerate())
    if not paths:
        print("No images found in", input_dir)
        return

    writer = ResultsWriter(output_dir, cfg)

    workers = int(cfg.get("runtime", {}).get("workers", 0) or 0)
    if workers <= 0:
        for p in tqdm(paths, desc="Processing", unit="img"):
            try:
                writer.add(process_one_path(str(p), cfg))
            except Exception as e:
                print("Failed:", p, e)
    else:
        with ProcessPoolExecutor(max_workers=workers) as ex:
            futures = {ex.submit(process_one_path, str(p), cfg): p for p in paths}
            for fut in tqdm(as_completed(futures), total=len(futures), desc="Processing", unit="img"):
                try:
                    writer.add(fut.result())
                except Exception as e:
                    print("Worker failed:", futures[fut], e)

    summary = writer.finalize()
    print("Summary:", summary)


if __name__ == "__main__":
    main()
