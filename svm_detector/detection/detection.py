"""检测结果记录。"""

from collections import namedtuple


class Detection(namedtuple('Detection', ['image_id', 'x', 'y', 'width', 'height', 'score'])):
    """单个检测结果：图像标识、像素坐标下的边界框 (x, y, width, height) 与得分。

    创建后不可修改。
    """

    __slots__ = ()

    @property
    def box(self):
        """(x_min, y_min, x_max, y_max) 形式的边界框。"""
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_dict(self):
        return {
            'image_id': self.image_id,
            'x': float(self.x),
            'y': float(self.y),
            'width': float(self.width),
            'height': float(self.height),
            'score': float(self.score),
        }

    @classmethod
    def from_dict(cls, record):
        return cls(
            image_id=record['image_id'],
            x=float(record['x']),
            y=float(record['y']),
            width=float(record['width']),
            height=float(record['height']),
            score=float(record['score']),
        )
