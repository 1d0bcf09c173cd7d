from datetime import datetime

from .extensions import db

# fits uuid4().hex as well as hyphenated UUIDs from older data files
ID_LENGTH = 36


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.String(ID_LENGTH), primary_key=True)
    code = db.Column(db.String(16), unique=True, nullable=False, index=True)
    group_name = db.Column(db.String(255), nullable=False)
    organizer_name = db.Column(db.String(255), nullable=False)
    organizer_email = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True)

    participants = db.relationship(
        "GroupParticipant",
        back_populates="group",
        order_by="GroupParticipant.position",
        cascade="all, delete-orphan",
    )
    assignments = db.relationship(
        "GroupAssignment",
        back_populates="group",
        order_by="GroupAssignment.position",
        cascade="all, delete-orphan",
    )


class GroupParticipant(db.Model):
    """Participant ids are only unique within their group."""
    __tablename__ = "group_participants"

    group_id = db.Column(
        db.String(ID_LENGTH), db.ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True
    )
    id = db.Column(db.String(ID_LENGTH), primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False, default="")
    email = db.Column(db.String(255), nullable=False, default="")

    group = db.relationship("Group", back_populates="participants")


class GroupAssignment(db.Model):
    """
    One giver -> receiver pair. The receiver id is stored as a Fernet token,
    the giver side stays a plain foreign key into the same group's roster.
    """
    __tablename__ = "group_assignments"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.String(ID_LENGTH), db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    giver_id = db.Column(db.String(ID_LENGTH), nullable=False)
    receiver_ciphertext = db.Column(db.Text, nullable=False)

    group = db.relationship("Group", back_populates="assignments")

    __table_args__ = (
        db.ForeignKeyConstraint(
            ["group_id", "giver_id"],
            ["group_participants.group_id", "group_participants.id"],
            ondelete="CASCADE",
            name="fk_group_assignment_giver",
        ),
        db.UniqueConstraint("group_id", "giver_id", name="uq_group_assignment_giver"),
    )
