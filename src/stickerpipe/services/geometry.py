import math


def resize_preserving_aspect_ratio(
    width: int,
    height: int,
    max_width: int | None = None,
    max_height: int | None = None,
) -> tuple[int, int]:
    """
    计算保持宽高比的目标尺寸。

    - 未指定上限：原样返回
    - 仅指定宽度：宽度等于 max_width，高度按比例
    - 仅指定高度：高度等于 max_height，宽度按比例
    - 同时指定：按 min(max_width/width, max_height/height) 等比缩放
    """
    if max_width is None and max_height is None:
        return width, height

    if width <= 0 or height <= 0:
        raise ValueError(f"源尺寸必须为正数: {width}x{height}")

    aspect_ratio = width / height

    if max_height is None:
        return max_width, _round_half_up(max_width / aspect_ratio)

    if max_width is None:
        return _round_half_up(max_height * aspect_ratio), max_height

    scale = min(max_width / width, max_height / height)
    return _round_half_up(width * scale), _round_half_up(height * scale)


def _round_half_up(value: float) -> int:
    # 内置 round() 是银行家舍入，这里需要 0.5 进位；极端宽高比下至少保留 1 像素
    return max(1, int(math.floor(value + 0.5)))
