from datetime import datetime, timezone


def ts(day: int, hour: int = 12) -> datetime:
    return datetime(2025, 3, day, hour, 0, tzinfo=timezone.utc)


def claim_message(sender_id: str, *, status: str = "pending", requested_at=None, reason="It's mine", **extra) -> dict:
    message = {
        "text": f"Claim Request: {reason}",
        "senderId": sender_id,
        "senderName": extra.pop("sender_name", f"Sender {sender_id}"),
        "senderProfilePicture": extra.pop("sender_picture", None),
        "timestamp": extra.pop("timestamp", requested_at),
        "messageType": "claim_request",
        "claimData": {
            "claimReason": reason,
            "requestedAt": requested_at,
            "status": status,
        },
    }
    message.update(extra)
    return message


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
