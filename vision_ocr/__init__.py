"""
Vision OCR Gateway — распознавание текста на изображениях через облачный OCR.

Принимает изображение в base64, временно кладёт его в объектное хранилище,
отправляет URL в асинхронный Read API, дожидается результата и возвращает
текст. Изображение удаляется после обработки в любом случае.
"""

from vision_ocr.errors import OcrFault, OcrGatewayError, OcrTimeout, StorageFault
from vision_ocr.schemas import InboundRequest, PipelineResponse, RecognizedDocument

__all__ = [
    "OcrGatewayError",
    "StorageFault",
    "OcrFault",
    "OcrTimeout",
    "InboundRequest",
    "PipelineResponse",
    "RecognizedDocument",
]
