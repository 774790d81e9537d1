"""
Attribute models
Shared selection axes (color, size, material) and their values.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from .base import Base


class Attribute(Base):
    """A named axis shared across products, e.g. color."""
    __tablename__ = "attribute"

    id = Column(String(36), primary_key=True)
    key = Column(String(64), nullable=False, unique=True)  # stable identifier
    name = Column(String(128), nullable=False)
    type = Column(String(32), nullable=False, default="select")
    filterable = Column(Boolean, nullable=False, default=True)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    values = relationship(
        "AttributeValue",
        back_populates="attribute",
        cascade="all, delete-orphan",
        order_by="AttributeValue.position",
    )
    translations = relationship(
        "AttributeTranslation",
        back_populates="attribute",
        cascade="all, delete-orphan",
    )

    def name_for(self, locale=None):
        if locale:
            for t in self.translations or []:
                if t.locale == locale and t.name:
                    return t.name
        return self.name or self.key

    def to_dict(self, locale=None):
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name_for(locale),
            "type": self.type or "select",
            "filterable": self.filterable is not False,
            "values": [v.to_dict(locale) for v in self.values],
        }


class AttributeTranslation(Base):
    __tablename__ = "attribute_translation"
    __table_args__ = (UniqueConstraint("attribute_id", "locale"),)

    id = Column(String(36), primary_key=True)
    attribute_id = Column(String(36), ForeignKey("attribute.id", ondelete="CASCADE"), nullable=False)
    locale = Column(String(8), nullable=False)
    name = Column(String(128), nullable=False)

    attribute = relationship("Attribute", back_populates="translations")


class AttributeValue(Base):
    __tablename__ = "attribute_value"

    id = Column(String(36), primary_key=True)
    attribute_id = Column(String(36), ForeignKey("attribute.id", ondelete="CASCADE"), nullable=False)
    value = Column(String(255), nullable=False)
    label = Column(String(255), nullable=True)
    image_url = Column(Text, nullable=True)
    colors = Column(JSON, nullable=True)  # swatch hex list
    position = Column(Integer, nullable=False, default=0)

    attribute = relationship("Attribute", back_populates="values")
    translations = relationship(
        "AttributeValueTranslation",
        back_populates="attribute_value",
        cascade="all, delete-orphan",
    )

    def label_for(self, locale=None):
        """Localized label, then any translation, then the stored label/value."""
        translations = list(self.translations or [])
        if locale:
            for t in translations:
                if t.locale == locale and t.label:
                    return t.label
        for t in translations:
            if t.label:
                return t.label
        return self.label or self.value

    def to_dict(self, locale=None):
        return {
            "id": self.id,
            "attributeId": self.attribute_id,
            "value": self.value,
            "label": self.label_for(locale),
            "imageUrl": self.image_url,
            "colors": self.colors,
        }


class AttributeValueTranslation(Base):
    __tablename__ = "attribute_value_translation"
    __table_args__ = (UniqueConstraint("attribute_value_id", "locale"),)

    id = Column(String(36), primary_key=True)
    attribute_value_id = Column(String(36), ForeignKey("attribute_value.id", ondelete="CASCADE"), nullable=False)
    locale = Column(String(8), nullable=False)
    label = Column(String(255), nullable=False)

    attribute_value = relationship("AttributeValue", back_populates="translations")
