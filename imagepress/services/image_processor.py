from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
import logging
import os

from PIL import Image

from imagepress.models.job import reduction_percent

FORMAT_CONFIGS: Dict[str, Dict[str, Any]] = {
    'webp': {'quality': 80, 'method': 4},
    'jpeg': {'quality': 80, 'optimize': True, 'progressive': True},
    'png': {'compress_level': 9, 'optimize': True},
}

# Pillow's png encoder ignores quality
QUALITY_FORMATS = ('webp', 'jpeg')

PIL_FORMATS = {'webp': 'WEBP', 'jpeg': 'JPEG', 'png': 'PNG'}

@dataclass
class ImageResult:
    success: bool
    original_size: int = 0
    compressed_size: int = 0
    reduction: int = 0
    error: Optional[str] = None

def _scaled(size: Tuple[int, int], scale: float) -> Tuple[int, int]:
    return max(1, round(size[0] * scale)), max(1, round(size[1] * scale))

def resize_image(img: Image.Image, width: Optional[int], height: Optional[int], fit: str = 'inside', background=(255, 255, 255, 0)) -> Image.Image:
    """Resize without ever enlarging the source.

    inside/outside scale to fit within/around the box, cover fills the box and
    centre-crops, contain fits inside the box and pads, fill stretches.
    Given a single dimension the aspect ratio is kept whatever the fit.
    """
    if not width and not height:
        return img

    src_w, src_h = img.size

    if not width or not height:
        scale = min(width / src_w if width else height / src_h, 1.0)
        return img.resize(_scaled(img.size, scale), Image.Resampling.LANCZOS)

    if fit == 'fill':
        return img.resize((min(width, src_w), min(height, src_h)), Image.Resampling.LANCZOS)

    ratio_w, ratio_h = width / src_w, height / src_h

    if fit == 'outside':
        scale = min(max(ratio_w, ratio_h), 1.0)
        return img.resize(_scaled(img.size, scale), Image.Resampling.LANCZOS)

    if fit == 'cover':
        scale = min(max(ratio_w, ratio_h), 1.0)
        resized = img.resize(_scaled(img.size, scale), Image.Resampling.LANCZOS)
        crop_w, crop_h = min(width, resized.width), min(height, resized.height)
        left = (resized.width - crop_w) // 2
        top = (resized.height - crop_h) // 2
        return resized.crop((left, top, left + crop_w, top + crop_h))

    scale = min(ratio_w, ratio_h, 1.0)
    resized = img.resize(_scaled(img.size, scale), Image.Resampling.LANCZOS)
    if fit != 'contain':
        return resized

    if resized.mode not in ('RGB', 'RGBA'):
        resized = resized.convert('RGB')
    canvas = Image.new(resized.mode, (width, height), background if resized.mode == 'RGBA' else background[:3])
    canvas.paste(resized, ((width - resized.width) // 2, (height - resized.height) // 2))
    return canvas

class ImageProcessor:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger if logger else logging.getLogger("image_processor")

    def get_supported_formats(self) -> list:
        return list(FORMAT_CONFIGS.keys())

    def process_image(self, input_path: Path, output_path: Path, settings: Dict[str, Any]) -> ImageResult:
        """Transcode one file. Codec failures are reported in the result, not raised."""
        try:
            output_format = settings['format']
            quality = settings.get('quality')
            resize = settings.get('resize') or {}

            save_kwargs = dict(FORMAT_CONFIGS[output_format])
            if quality is not None and output_format in QUALITY_FORMATS:
                save_kwargs['quality'] = quality

            with Image.open(input_path) as source:
                img = source.convert('RGBA') if source.mode in ('P', 'LA') else source.copy()

            if output_format == 'jpeg' and img.mode != 'RGB':
                img = img.convert('RGB')
            elif img.mode not in ('RGB', 'RGBA', 'L'):
                img = img.convert('RGBA')

            if resize.get('width') or resize.get('height'):
                img = resize_image(
                    img,
                    resize.get('width'),
                    resize.get('height'),
                    resize.get('fit') or 'inside'
                )

            img.save(output_path, format=PIL_FORMATS[output_format], **save_kwargs)

            original_size = os.path.getsize(input_path)
            compressed_size = os.path.getsize(output_path)

            self.logger.debug(f"Processed: {Path(input_path).name} -> {Path(output_path).name}")

            return ImageResult(
                success=True,
                original_size=original_size,
                compressed_size=compressed_size,
                reduction=reduction_percent(original_size, compressed_size)
            )
        except Exception as e:
            self.logger.error(f"Failed to process image {input_path}: {e}")
            return ImageResult(success=False, error=str(e))
