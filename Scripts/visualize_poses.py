import argparse
import dataclasses
import logging
from pathlib import Path

import cv2

from pose_kit import PoseConfig, draw_poses, load_pipeline, load_pose_config


def main() -> int:
    parser = argparse.ArgumentParser(description="Run YOLO pose estimation and draw boxes + skeletons.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--model", default="Models/yolo11n-pose.onnx", help="Path to a YOLO pose ONNX model.")
    parser.add_argument("--config", default=None, help="Optional pose config JSON (thresholds, stride, input shape).")
    parser.add_argument("--conf", type=float, default=None, help="Score threshold (overrides config).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (overrides config).")
    parser.add_argument("--kpt-conf", type=float, default=None, help="Keypoint draw threshold (overrides config).")
    parser.add_argument("--imgsz", type=int, default=None, help="Fixed square model input size; omit for dynamic input.")
    parser.add_argument("--no-nms", action="store_true", help="Disable NMS and only sort detections by score.")
    parser.add_argument(
        "--providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--show", action="store_true", help="Show a window with visualized poses.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) to save the visualization.")
    parser.add_argument("--every", type=int, default=1, help="Process every Nth frame for video/webcam.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING...).")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_pose_config(Path(args.config)) if args.config else PoseConfig()
    overrides = {}
    if args.conf is not None:
        overrides["score_threshold"] = args.conf
    if args.iou is not None:
        overrides["iou_threshold"] = args.iou
    if args.kpt_conf is not None:
        overrides["keypoint_threshold"] = args.kpt_conf
    if args.imgsz is not None:
        if args.imgsz < 32:
            raise ValueError("--imgsz must be >= 32")
        overrides["input_shape"] = (int(args.imgsz), int(args.imgsz))
    if overrides:
        config = dataclasses.replace(config, **overrides)

    providers = None
    if args.providers:
        providers = [p.strip() for p in str(args.providers).split(",") if p.strip()]

    pipeline = load_pipeline(
        model_path=args.model,
        config=config,
        apply_nms=not bool(args.no_nms),
        providers=providers,
    )

    # Default behavior stays image-based when no source is provided.
    image_path = args.image or (None if (args.video is not None or args.webcam is not None) else "Media/pose.jpg")

    if image_path is not None:
        img = cv2.imread(image_path)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {image_path}")

        result = pipeline.run(img)
        vis = draw_poses(img, result.detections, keypoint_threshold=config.keypoint_threshold)
        if args.out:
            ok = cv2.imwrite(args.out, vis)
            if not ok:
                raise RuntimeError(f"Failed to write output image: {args.out}")

        if args.show:
            cv2.imshow("poses", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()

        print(f"{len(result.detections)} detections, inference {result.inference_ms:.2f} ms")
        for det in result.detections:
            visible = sum(1 for kp in det.keypoints if kp.score >= config.keypoint_threshold)
            print(f"score={det.score:.3f} bbox={tuple(round(v, 1) for v in det.bbox)} keypoints={visible}/{len(det.keypoints)}")

        return 0

    # Video/webcam path
    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    if args.video is not None:
        cap = cv2.VideoCapture(args.video)
        if not cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {args.video}")
    else:
        cam_index = 0 if args.webcam is None else int(args.webcam)
        cap = cv2.VideoCapture(cam_index)
        if not cap.isOpened():
            raise RuntimeError(f"Could not open webcam index: {cam_index}")

    writer = None
    frame_idx = 0
    processed = 0

    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break

            frame_idx += 1
            if (frame_idx - 1) % args.every != 0:
                continue

            detections = pipeline(frame)
            vis = draw_poses(frame, detections, keypoint_threshold=config.keypoint_threshold)

            if args.out and writer is None:
                fps = cap.get(cv2.CAP_PROP_FPS)
                if fps is None or fps <= 0:
                    fps = 30.0
                h, w = vis.shape[:2]
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                writer = cv2.VideoWriter(args.out, fourcc, fps, (w, h))
                if not writer.isOpened():
                    raise RuntimeError(f"Failed to open video writer: {args.out}")

            if writer is not None:
                writer.write(vis)

            if args.show:
                cv2.imshow("poses", vis)
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break

            processed += 1
            if args.max_frames and processed >= args.max_frames:
                break

    finally:
        cap.release()
        if writer is not None:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()

    print(f"Processed {processed} frames")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
