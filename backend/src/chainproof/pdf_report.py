"""Court-ready PDF audit report for a ledger evidence record."""
import hashlib
import json
from datetime import datetime, timezone
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import HRFlowable, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

DISCLAIMER = (
    "This document has been generated by the ChainProof decentralized whistleblowing platform. "
    "All data contained herein is stored on an immutable distributed ledger (Hyperledger Fabric) "
    "and anchored to public blockchain networks for independent verification. "
    "The cryptographic hashes provided can be used to verify the authenticity and integrity "
    "of the evidence file. This report does not constitute legal advice."
)


def format_timestamp(ts) -> str:
    if not ts:
        return "N/A"
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def compute_report_hash(evidence: dict, exported_at: str) -> str:
    report_data = json.dumps(
        {
            "evidenceId": evidence.get("evidenceId"),
            "fileHash": evidence.get("fileHash"),
            "custodyLog": evidence.get("custodyLog") or [],
            "exportedAt": exported_at,
        },
        separators=(",", ":"),
    )
    return hashlib.sha256(report_data.encode("utf-8")).hexdigest()


def _styles():
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("cp-title", parent=base["Title"], fontSize=24,
                                textColor=colors.HexColor("#1a365d"), alignment=TA_CENTER),
        "subtitle": ParagraphStyle("cp-subtitle", parent=base["Normal"], fontSize=14,
                                   textColor=colors.HexColor("#4a5568"), alignment=TA_CENTER, spaceAfter=8),
        "banner": ParagraphStyle("cp-banner", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=10,
                                 textColor=colors.HexColor("#c53030"), alignment=TA_CENTER),
        "section": ParagraphStyle("cp-section", parent=base["Heading3"], fontSize=12,
                                  textColor=colors.HexColor("#2d3748"), spaceBefore=10, spaceAfter=4),
        "body": ParagraphStyle("cp-body", parent=base["Normal"], fontSize=9, textColor=colors.HexColor("#4a5568")),
        "cell": ParagraphStyle("cp-cell", parent=base["Normal"], fontSize=9, wordWrap="CJK"),
        "entry": ParagraphStyle("cp-entry", parent=base["Normal"], fontName="Helvetica-Bold", fontSize=9,
                                textColor=colors.HexColor("#2d3748"), leftIndent=10),
        "entry_detail": ParagraphStyle("cp-entry-detail", parent=base["Normal"], fontSize=9,
                                       textColor=colors.HexColor("#718096"), leftIndent=20),
        "disclaimer_title": ParagraphStyle("cp-disclaimer-title", parent=base["Normal"], fontSize=8,
                                           textColor=colors.HexColor("#718096"), alignment=TA_CENTER),
        "disclaimer": ParagraphStyle("cp-disclaimer", parent=base["Normal"], fontSize=8, leading=11,
                                     textColor=colors.HexColor("#718096"), alignment=TA_JUSTIFY),
        "footer": ParagraphStyle("cp-footer", parent=base["Normal"], fontSize=8,
                                 textColor=colors.HexColor("#a0aec0"), alignment=TA_CENTER),
    }


def _info_table(rows, styles):
    data = [
        [Paragraph(f"<b>{escape(label)}</b>", styles["cell"]), Paragraph(escape(str(value or "N/A")), styles["cell"])]
        for label, value in rows
    ]
    table = Table(data, colWidths=[130, 365])
    table.setStyle(TableStyle([
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("TEXTCOLOR", (0, 0), (0, -1), colors.HexColor("#4a5568")),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    return table


def _section(title, styles):
    return [
        Paragraph(title, styles["section"]),
        HRFlowable(width="50%", thickness=1, color=colors.HexColor("#cbd5e0"), hAlign="LEFT", spaceAfter=6),
    ]


def generate_audit_report(evidence: dict, generated_at: datetime = None):
    """
    Render the audit report for a ledger evidence record (camelCase dict).
    Returns (pdf_bytes, report_hash).
    """
    generated_at = generated_at or datetime.now(timezone.utc)
    exported_at = generated_at.isoformat()
    report_hash = compute_report_hash(evidence, exported_at)
    styles = _styles()
    evidence_id = evidence.get("evidenceId", "")

    story = [
        Paragraph("CHAINPROOF", styles["title"]),
        Paragraph("Cryptographic Evidence Audit Report", styles["subtitle"]),
        HRFlowable(width="100%", thickness=2, color=colors.HexColor("#e2e8f0"), spaceAfter=8),
        Paragraph("CONFIDENTIAL - FOR LEGAL USE ONLY", styles["banner"]),
        Spacer(1, 18),
    ]

    story += _section("EVIDENCE SUMMARY", styles)
    story.append(_info_table([
        ("Evidence ID:", evidence_id),
        ("IPFS CID:", evidence.get("ipfsCid")),
        ("File Hash (SHA-256):", evidence.get("fileHash")),
        ("File Type:", evidence.get("fileType") or "Unknown"),
        ("Category:", evidence.get("category") or "Not specified"),
        ("Status:", evidence.get("status")),
        ("Integrity Status:", evidence.get("integrityStatus")),
    ], styles))

    timeline = [("Submitted:", format_timestamp(evidence.get("submittedAt")))]
    for label, key in (("Verified:", "verifiedAt"), ("Reviewed:", "reviewedAt"), ("Exported:", "exportedAt")):
        if evidence.get(key):
            timeline.append((label, format_timestamp(evidence[key])))
    story += _section("TIMELINE", styles)
    story.append(_info_table(timeline, styles))

    if evidence.get("polygonTxHash"):
        story += _section("PUBLIC BLOCKCHAIN ANCHOR", styles)
        story.append(_info_table([
            ("Polygon/Sepolia TX:", evidence["polygonTxHash"]),
            ("Anchored At:", format_timestamp(evidence.get("polygonAnchorAt"))),
        ], styles))
        story.append(Paragraph(
            "This transaction can be independently verified on the public blockchain.", styles["body"]
        ))

    story.append(PageBreak())
    story += _section("CHAIN OF CUSTODY LOG", styles)
    story.append(Paragraph(
        "The following is an immutable record of all actions taken on this evidence:", styles["body"]
    ))
    story.append(Spacer(1, 8))

    custody_log = evidence.get("custodyLog") or []
    if not custody_log:
        story.append(Paragraph("No custody log entries found.", styles["body"]))
    for entry in custody_log:
        story.append(Paragraph(
            f"[{format_timestamp(entry.get('timestamp'))}] {escape(str(entry.get('action', '')))}", styles["entry"]
        ))
        story.append(Paragraph(f"Organization: {escape(str(entry.get('actorOrg', '')))}", styles["entry_detail"]))
        story.append(Paragraph(escape(str(entry.get("description", ""))), styles["entry_detail"]))
        story.append(HRFlowable(width="100%", thickness=0.5, color=colors.HexColor("#e2e8f0"),
                                spaceBefore=4, spaceAfter=4))

    story.append(Spacer(1, 18))
    story += _section("CRYPTOGRAPHIC VERIFICATION", styles)
    story.append(Paragraph("This report can be verified using the following cryptographic hashes:", styles["body"]))
    story.append(Spacer(1, 6))
    story.append(_info_table([
        ("Report Hash:", report_hash),
        ("Original File Hash:", evidence.get("fileHash")),
    ], styles))

    story += [
        Spacer(1, 18),
        Paragraph("<u>LEGAL DISCLAIMER</u>", styles["disclaimer_title"]),
        Spacer(1, 4),
        Paragraph(DISCLAIMER, styles["disclaimer"]),
        Spacer(1, 18),
        Paragraph(f"Generated: {exported_at}", styles["footer"]),
        Paragraph("ChainProof - Secure Disclosure Network", styles["footer"]),
    ]

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=50,
        rightMargin=50,
        topMargin=50,
        bottomMargin=50,
        title=f"ChainProof Audit Report - {evidence_id}",
        author="ChainProof Whistleblowing Platform",
        subject="Cryptographic Evidence Audit Report",
    )
    doc.build(story)
    return buf.getvalue(), report_hash
