"""
Database tables (Flask-SQLAlchemy).

Tables:
- quotes:            One row per quote request (customer fields + totals)
- quote_files:       One row per uploaded file (OCR and analysis results)
- quote_jobs:        Background processing runs (status, error, result)
- quote_job_events:  Progress log lines for the processing page
- orders:            Stripe checkout / payment intent per quote

The app uses SQLite by default and Postgres (Supabase) in production via
SQLALCHEMY_DATABASE_URI. Tables are created on startup with create_all().
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class QuoteRecord(db.Model):
    """
    A quote request and, once priced, its totals.

    Status lifecycle: draft -> processing -> (quoted | failed) -> paid
    """
    __tablename__ = 'quotes'

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.String(16), unique=True, nullable=False, index=True)

    # Customer
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    source_language = db.Column(db.String(50), nullable=False)
    target_language = db.Column(db.String(50), nullable=False)
    intended_use = db.Column(db.String(100), nullable=False)

    # Pricing (set when the job completes)
    status = db.Column(db.String(20), default='draft', index=True)
    per_page_rate = db.Column(db.Float)
    total_billable_pages = db.Column(db.Float)
    cert_type = db.Column(db.String(100))
    cert_price = db.Column(db.Float)
    quote_total = db.Column(db.Float)
    result = db.Column(db.JSON)  # QuoteResult.to_dict()
    error = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    files = db.relationship('QuoteFileRecord', back_populates='quote', lazy='dynamic',
                            order_by='QuoteFileRecord.file_name')

    def to_dict(self):
        """Convert quote to dictionary for API responses"""
        return {
            'quote_id': self.quote_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'source_language': self.source_language,
            'target_language': self.target_language,
            'intended_use': self.intended_use,
            'status': self.status,
            'per_page_rate': self.per_page_rate,
            'total_billable_pages': self.total_billable_pages,
            'cert_type': self.cert_type,
            'cert_price': self.cert_price,
            'quote_total': self.quote_total,
            'error': self.error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class QuoteFileRecord(db.Model):
    """
    One uploaded file and what OCR / analysis made of it.

    JSON columns hold per-page maps keyed by page number as a string.
    """
    __tablename__ = 'quote_files'
    __table_args__ = (db.UniqueConstraint('quote_id', 'file_name', name='uq_quote_file'),)

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.String(16), db.ForeignKey('quotes.quote_id'), nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)
    storage_path = db.Column(db.String(500), nullable=False)
    mime_type = db.Column(db.String(100))
    size = db.Column(db.Integer, default=0)

    # OCR
    ocr_status = db.Column(db.String(20), default='pending')
    ocr_message = db.Column(db.Text)
    ocr_provider = db.Column(db.String(20))
    page_count = db.Column(db.Integer, default=0)
    words_per_page = db.Column(db.JSON)
    total_word_count = db.Column(db.Integer, default=0)
    detected_language = db.Column(db.String(20))

    # LLM analysis
    analysis_status = db.Column(db.String(20), default='pending')
    analysis_message = db.Column(db.Text)
    languages_all = db.Column(db.JSON)
    page_complexity = db.Column(db.JSON)
    page_doc_types = db.Column(db.JSON)
    page_names = db.Column(db.JSON)
    page_languages = db.Column(db.JSON)
    page_confidence = db.Column(db.JSON)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    quote = db.relationship('QuoteRecord', back_populates='files')

    def to_dict(self):
        """Row shape returned by /api/quote-files"""
        return {
            'quote_id': self.quote_id,
            'file_name': self.file_name,
            'storage_path': self.storage_path,
            'mime_type': self.mime_type,
            'size': self.size,
            'ocr_status': self.ocr_status,
            'ocr_message': self.ocr_message,
            'ocr_provider': self.ocr_provider,
            'page_count': self.page_count,
            'words_per_page': self.words_per_page or [],
            'total_word_count': self.total_word_count,
            'detected_language': self.detected_language,
            'analysis_status': self.analysis_status,
            'analysis_message': self.analysis_message,
            'languages_all': self.languages_all or [],
            'page_complexity': self.page_complexity or {},
            'page_doc_types': self.page_doc_types or {},
            'page_names': self.page_names or {},
            'page_languages': self.page_languages or {},
            'page_confidence': self.page_confidence or {},
        }


class QuoteJob(db.Model):
    """Background processing run for a quote."""
    __tablename__ = 'quote_jobs'

    id = db.Column(db.String(36), primary_key=True)  # UUID
    quote_id = db.Column(db.String(16), db.ForeignKey('quotes.quote_id'), nullable=False, index=True)
    status = db.Column(db.String(20), default='pending', index=True)
    error = db.Column(db.Text)
    result = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    events = db.relationship('QuoteJobEvent', back_populates='job', lazy='dynamic',
                             order_by='QuoteJobEvent.id')


class QuoteJobEvent(db.Model):
    """One progress line of a quote job."""
    __tablename__ = 'quote_job_events'

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(36), db.ForeignKey('quote_jobs.id'), nullable=False, index=True)
    step = db.Column(db.String(50), nullable=False)
    message = db.Column(db.Text)
    progress = db.Column(db.Integer)
    ts = db.Column(db.DateTime(timezone=True), default=_utcnow)

    job = db.relationship('QuoteJob', back_populates='events')


class OrderRecord(db.Model):
    """
    A payment attempt for a quote.

    Created pending when checkout starts; the Stripe webhook marks it paid.
    """
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.String(16), db.ForeignKey('quotes.quote_id'), nullable=False, index=True)
    stripe_session_id = db.Column(db.String(255), unique=True)
    stripe_payment_intent = db.Column(db.String(255), index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), default='usd')
    status = db.Column(db.String(20), default='pending')  # pending, paid
    customer_email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    paid_at = db.Column(db.DateTime(timezone=True))

    def to_dict(self):
        return {
            'quote_id': self.quote_id,
            'stripe_session_id': self.stripe_session_id,
            'stripe_payment_intent': self.stripe_payment_intent,
            'amount_cents': self.amount_cents,
            'currency': self.currency,
            'status': self.status,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
        }
