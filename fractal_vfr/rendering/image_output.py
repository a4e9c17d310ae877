"""
Image export for rendered frames.

Color buffers are written with Pillow. PNG files carry the render settings in
a JSON text chunk; JPEG files get a companion JSON file. Animations are
written as a numbered frame sequence plus a ``frames.json`` manifest holding
each frame's time value, which a variable-frame-rate encoder needs.
"""

import json
import numpy as np
from typing import Dict, Any, List, Optional, Sequence, Tuple
from pathlib import Path
from dataclasses import dataclass, asdict, field
from datetime import datetime
import logging

from PIL import Image, PngImagePlugin

logger = logging.getLogger(__name__)

MANIFEST_NAME = "frames.json"


@dataclass
class RenderMetadata:
    """Settings a frame was rendered with."""

    formula: str
    center: Tuple[float, float]
    scale: float
    resolution: Tuple[int, int]  # width, height
    max_iterations: int
    color_palette: str

    time: Optional[float] = None
    frame_index: Optional[int] = None
    render_time_seconds: float = 0.0
    num_workers: int = 1

    timestamp: str = ""
    software_version: str = "1.0.0"

    formula_parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        data = dict(data)
        for key in ('center', 'resolution'):
            if key in data and data[key] is not None:
                data[key] = tuple(data[key])
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Writes color buffers to disk."""

    def __init__(self):
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
            '.jpg': self._save_jpeg,
            '.jpeg': self._save_jpeg,
        }

    def save_image(self, image_array: np.ndarray, filepath: Path,
                   metadata: Optional[RenderMetadata] = None, quality: int = 95) -> Path:
        """
        Save an RGB buffer to file.

        Args:
            image_array: RGB buffer (height, width, 3) of uint8
            filepath: Output file path; the suffix selects the format
            metadata: Render metadata to embed
            quality: JPEG quality (1-100)

        Returns:
            The written path
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

        image_array = self._prepare_image_array(image_array)
        pil_image = Image.fromarray(image_array)

        if filepath.parent and not filepath.parent.exists():
            filepath.parent.mkdir(parents=True, exist_ok=True)

        self.supported_formats[suffix](pil_image, filepath, metadata, quality)

        logger.info(f"Saved image: {filepath} ({pil_image.size[0]}x{pil_image.size[1]})")
        return filepath

    def _prepare_image_array(self, image_array: np.ndarray) -> np.ndarray:
        """Validate the buffer shape and convert it to uint8."""
        image_array = np.asarray(image_array)
        if image_array.ndim != 3 or image_array.shape[2] != 3:
            raise ValueError(f"Expected RGB image array (H, W, 3), got {image_array.shape}")

        if image_array.dtype != np.uint8:
            image_array = np.clip(image_array, 0, 255).astype(np.uint8)

        return np.ascontiguousarray(image_array)

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], quality: int) -> None:
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", f"Fractal: {metadata.formula}")
            pnginfo.add_text("Software", f"fractal-vfr v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text("FractalMetadata", metadata.to_json())

        pil_image.save(filepath, "PNG", pnginfo=pnginfo, compress_level=6)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        pil_image.save(filepath, format='TIFF', compression='tiff_lzw')
        if metadata:
            self._write_companion_json(filepath, metadata)

    def _save_jpeg(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int) -> None:
        pil_image.save(filepath, "JPEG", quality=quality, optimize=True)
        if metadata:
            self._write_companion_json(filepath, metadata)

    def _write_companion_json(self, filepath: Path, metadata: RenderMetadata) -> None:
        json_path = filepath.with_suffix('.json')
        with open(json_path, 'w', encoding='utf-8') as f:
            f.write(metadata.to_json())
        logger.info(f"Saved metadata: {json_path}")

    def create_image_sequence(self, image_arrays: Sequence[np.ndarray], output_dir: Path,
                              times: Sequence[float], base_name: str = "frame",
                              metadata: Optional[RenderMetadata] = None,
                              padding: int = 6) -> List[Path]:
        """
        Save a sequence of frames with sequential numbering and a timing manifest.

        Frames are written in the given order, so a failure part-way leaves
        the earlier frames on disk.

        Args:
            image_arrays: RGB buffers in output order
            output_dir: Output directory
            times: Time value of each frame
            base_name: Base filename
            metadata: Settings shared by all frames; copied per frame with
                its index and time filled in
            padding: Number of digits for frame numbering

        Returns:
            List of saved file paths
        """
        if len(image_arrays) != len(times):
            raise ValueError(f"Got {len(image_arrays)} frames but {len(times)} time values")

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        saved_paths = []
        entries = []
        for i, (image_array, t) in enumerate(zip(image_arrays, times)):
            filename = f"{base_name}_{str(i).zfill(padding)}.png"
            frame_metadata = None
            if metadata is not None:
                frame_metadata = RenderMetadata.from_dict({**metadata.to_dict(), 'time': t, 'frame_index': i})
            saved_paths.append(self.save_image(image_array, output_dir / filename, frame_metadata))
            entries.append({'index': i, 't': t, 'file': filename})

        self.write_manifest(output_dir, entries, metadata)
        logger.info(f"Saved {len(saved_paths)} frames to {output_dir}")
        return saved_paths

    def write_manifest(self, output_dir: Path, entries: List[Dict[str, Any]],
                       metadata: Optional[RenderMetadata] = None) -> Path:
        """Write the frame timing manifest."""
        manifest_path = Path(output_dir) / MANIFEST_NAME
        manifest = {
            'frame_count': len(entries),
            'frames': entries,
            'render': metadata.to_dict() if metadata is not None else None,
        }
        with open(manifest_path, 'w', encoding='utf-8') as f:
            json.dump(manifest, f, indent=2)
        return manifest_path

    @staticmethod
    def load_manifest(output_dir: Path) -> Dict[str, Any]:
        with open(Path(output_dir) / MANIFEST_NAME, 'r', encoding='utf-8') as f:
            return json.load(f)

    def extract_metadata_from_image(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Extract render metadata from a saved image.

        Args:
            filepath: Path to image file

        Returns:
            Extracted metadata or None
        """
        filepath = Path(filepath)

        with Image.open(filepath) as img:
            text = getattr(img, 'text', None) or {}
            if 'FractalMetadata' in text:
                return RenderMetadata.from_json(text['FractalMetadata'])

        json_path = filepath.with_suffix('.json')
        if json_path.exists():
            with open(json_path, 'r', encoding='utf-8') as f:
                return RenderMetadata.from_json(f.read())

        return None
