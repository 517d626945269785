"""
Strip identifying metadata from evidence files before they leave the server.

Images (JPEG, PNG, TIFF, WebP) lose GPS, camera, serial number, author and
software tags; capture dates are kept since they matter as evidence. PDFs
are rebuilt page by page, which drops the document info dictionary and XMP.
Anything else passes through untouched.
"""
import io
import logging

from PIL import ExifTags, Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)

IMAGE_FORMATS = ("JPEG", "PNG", "TIFF", "WEBP")

# Tags in IFD0
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_SOFTWARE = 0x0131
TAG_DATETIME = 0x0132
TAG_ARTIST = 0x013B
TAG_HOST_COMPUTER = 0x013C
TAG_COPYRIGHT = 0x8298
TAG_XP_AUTHOR = 0x9C9D
TAG_EXIF_IFD = 0x8769
TAG_GPS_IFD = 0x8825

# Tags in the Exif sub-IFD
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
TAG_BODY_SERIAL = 0xA431

# GPS sub-IFD
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4
GPS_ALTITUDE = 6

IDENTIFYING_IFD0_TAGS = (
    TAG_MAKE,
    TAG_MODEL,
    TAG_SOFTWARE,
    TAG_ARTIST,
    TAG_HOST_COMPUTER,
    TAG_COPYRIGHT,
    TAG_XP_AUTHOR,
)


def _text(value):
    if value is None:
        return None
    if isinstance(value, bytes):
        # XP* tags are UTF-16LE, NUL terminated
        try:
            return value.decode("utf-16-le").rstrip("\x00") or None
        except UnicodeDecodeError:
            return value.decode("latin-1").rstrip("\x00") or None
    text = str(value).strip().rstrip("\x00")
    return text or None


def _dms_to_degrees(dms, ref):
    try:
        degrees = float(dms[0]) + float(dms[1]) / 60 + float(dms[2]) / 3600
    except (TypeError, ValueError, IndexError, ZeroDivisionError):
        return None
    if ref in ("S", "W"):
        degrees = -degrees
    return round(degrees, 6)


def empty_report() -> dict:
    return {
        "gps": {"latitude": None, "longitude": None, "altitude": None},
        "camera": {"make": None, "model": None, "serialNumber": None},
        "author": {"artist": None, "creator": None, "author": None, "copyright": None},
        "software": {"software": None, "hostComputer": None},
        "dates": {"createDate": None, "modifyDate": None, "dateTimeOriginal": None},
    }


def _had_identifying_data(report) -> bool:
    return bool(
        report["gps"]["latitude"]
        or report["author"]["artist"]
        or report["camera"]["make"]
        or report["author"]["author"]
    )


def removed_fields(report) -> list:
    """Report sections that actually held something."""
    return [section for section, values in report.items() if any(v is not None for v in values.values())]


###############################################################
# Images
###############################################################
def _image_report(exif) -> dict:
    report = empty_report()
    gps = exif.get_ifd(TAG_GPS_IFD)
    exif_ifd = exif.get_ifd(TAG_EXIF_IFD)

    if gps:
        if GPS_LATITUDE in gps:
            report["gps"]["latitude"] = _dms_to_degrees(gps[GPS_LATITUDE], gps.get(GPS_LATITUDE_REF))
        if GPS_LONGITUDE in gps:
            report["gps"]["longitude"] = _dms_to_degrees(gps[GPS_LONGITUDE], gps.get(GPS_LONGITUDE_REF))
        if GPS_ALTITUDE in gps:
            report["gps"]["altitude"] = float(gps[GPS_ALTITUDE])

    report["camera"]["make"] = _text(exif.get(TAG_MAKE))
    report["camera"]["model"] = _text(exif.get(TAG_MODEL))
    report["camera"]["serialNumber"] = _text(exif_ifd.get(TAG_BODY_SERIAL))
    report["author"]["artist"] = _text(exif.get(TAG_ARTIST))
    report["author"]["author"] = _text(exif.get(TAG_XP_AUTHOR))
    report["author"]["copyright"] = _text(exif.get(TAG_COPYRIGHT))
    report["software"]["software"] = _text(exif.get(TAG_SOFTWARE))
    report["software"]["hostComputer"] = _text(exif.get(TAG_HOST_COMPUTER))
    report["dates"]["createDate"] = _text(exif_ifd.get(TAG_DATETIME_DIGITIZED))
    report["dates"]["modifyDate"] = _text(exif.get(TAG_DATETIME))
    report["dates"]["dateTimeOriginal"] = _text(exif_ifd.get(TAG_DATETIME_ORIGINAL))
    return report


def _strip_image(img) -> bytes:
    exif = img.getexif()
    for tag in IDENTIFYING_IFD0_TAGS:
        exif.pop(tag, None)
    exif.pop(TAG_GPS_IFD, None)
    if TAG_EXIF_IFD in exif:
        exif.get_ifd(TAG_EXIF_IFD).pop(TAG_BODY_SERIAL, None)

    out = io.BytesIO()
    params = {"format": img.format, "exif": exif.tobytes()}
    if img.format == "JPEG":
        # no re-quantisation; drop XMP and comments
        params.update(quality="keep", xmp=b"", comment=b"")
        if img.info.get("icc_profile"):
            params["icc_profile"] = img.info["icc_profile"]
    elif img.format == "WEBP":
        params.update(lossless=bool(img.info.get("lossless")), quality=95)
    elif img.format == "TIFF":
        # a plain copy carries no TIFF tag directory of its own
        img.load()
        img = img.copy()
    img.save(out, **params)
    return out.getvalue()


###############################################################
# PDFs
###############################################################
def _pdf_report(reader) -> dict:
    report = empty_report()
    meta = reader.metadata or {}
    report["author"]["author"] = _text(meta.get("/Author"))
    report["author"]["creator"] = _text(meta.get("/Creator"))
    report["software"]["software"] = _text(meta.get("/Producer"))
    report["dates"]["createDate"] = _text(meta.get("/CreationDate"))
    report["dates"]["modifyDate"] = _text(meta.get("/ModDate"))
    return report


def _strip_pdf(reader) -> bytes:
    writer = PdfWriter()
    for page in reader.pages:
        writer.add_page(page)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


###############################################################
# Entry points
###############################################################
def _is_pdf(data: bytes, filename: str) -> bool:
    return data[:5] == b"%PDF-" or (filename or "").lower().endswith(".pdf")


def strip_metadata(data: bytes, filename: str = "") -> dict:
    """
    Returns {"buffer", "removedMetadata", "hadIdentifyingData"}.
    Files that can't be parsed come back unchanged with an empty report.
    """
    passthrough = {"buffer": data, "removedMetadata": empty_report(), "hadIdentifyingData": False}

    if _is_pdf(data, filename):
        try:
            reader = PdfReader(io.BytesIO(data))
            if reader.is_encrypted:
                logger.warning("Encrypted PDF %s left as is", filename)
                return passthrough
            report = _pdf_report(reader)
            cleaned = _strip_pdf(reader)
        except (PdfReadError, ValueError, KeyError) as e:
            logger.warning("Could not parse PDF %s: %s", filename, e)
            return passthrough
    else:
        try:
            img = Image.open(io.BytesIO(data))
        except UnidentifiedImageError:
            return passthrough
        if img.format not in IMAGE_FORMATS:
            return passthrough
        try:
            report = _image_report(img.getexif())
            cleaned = _strip_image(img)
        except (OSError, ValueError) as e:
            logger.warning("Could not strip image %s: %s", filename, e)
            return passthrough

    had_identifying = _had_identifying_data(report)
    logger.info(
        "Metadata stripped: file=%s sections=%s hadGPS=%s",
        filename, removed_fields(report), report["gps"]["latitude"] is not None,
    )
    return {"buffer": cleaned, "removedMetadata": report, "hadIdentifyingData": had_identifying}


def get_metadata(data: bytes, filename: str = "") -> dict:
    """Readable metadata without modifying the file."""
    if _is_pdf(data, filename):
        try:
            reader = PdfReader(io.BytesIO(data))
            return {str(k).lstrip("/"): str(v) for k, v in (reader.metadata or {}).items()}
        except (PdfReadError, ValueError) as e:
            logger.warning("Could not read PDF metadata %s: %s", filename, e)
            return {}

    try:
        img = Image.open(io.BytesIO(data))
    except UnidentifiedImageError:
        return {}

    exif = img.getexif()
    out = {"Format": img.format, "ImageWidth": img.width, "ImageHeight": img.height}
    for tag, value in exif.items():
        if tag in (TAG_EXIF_IFD, TAG_GPS_IFD):
            continue
        out[ExifTags.TAGS.get(tag, str(tag))] = _text(value)
    for tag, value in exif.get_ifd(TAG_EXIF_IFD).items():
        out[ExifTags.TAGS.get(tag, str(tag))] = _text(value)
    for tag, value in exif.get_ifd(TAG_GPS_IFD).items():
        out[ExifTags.GPSTAGS.get(tag, f"GPS{tag}")] = _text(value)
    return out
