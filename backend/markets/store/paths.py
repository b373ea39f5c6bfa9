"""Document paths used by the market services.

Layout mirrors the mobile app's document tree:

    markets/{venue}/details/info                         counters, previous cycle, cycle clock
    markets/{venue}/details/info/userReactions/{user}    one user's selections on a venue
    userReactions/{user}/reactions/{venue}               reverse index for "my reactions"
    users/{user}/savedMarkets/{venue}                    saved market + alert settings
    users/{user}/settings/alerts                         global alert preferences
    markets/{venue}/details/info/comments/{id}           anonymous comment
    users/{user}/comments/{id}                           ids of the user's own comments
"""

MARKET_INFO_COLLECTION = "details"


def parent_path(path: str) -> str:
    """Collection path of a document ("" for a top-level document)."""
    head, _, _ = path.rpartition("/")
    return head


def document_id(path: str) -> str:
    return path.rpartition("/")[2]


def market_info_path(venue_id: str) -> str:
    return f"markets/{venue_id}/details/info"


def venue_id_from_info_path(path: str) -> str:
    # markets/{venue}/details/info
    return path.split("/")[1]


def venue_reactions_collection(venue_id: str) -> str:
    return f"{market_info_path(venue_id)}/userReactions"


def venue_user_reaction_path(venue_id: str, user_id: str) -> str:
    return f"{venue_reactions_collection(venue_id)}/{user_id}"


def user_reactions_collection(user_id: str) -> str:
    return f"userReactions/{user_id}/reactions"


def user_reaction_index_path(user_id: str, venue_id: str) -> str:
    return f"{user_reactions_collection(user_id)}/{venue_id}"


def saved_markets_collection(user_id: str) -> str:
    return f"users/{user_id}/savedMarkets"


def saved_market_path(user_id: str, venue_id: str) -> str:
    return f"{saved_markets_collection(user_id)}/{venue_id}"


def alert_settings_path(user_id: str) -> str:
    return f"users/{user_id}/settings/alerts"


def market_comments_collection(venue_id: str) -> str:
    return f"{market_info_path(venue_id)}/comments"


def market_comment_path(venue_id: str, comment_id: str) -> str:
    return f"{market_comments_collection(venue_id)}/{comment_id}"


def user_comments_collection(user_id: str) -> str:
    return f"users/{user_id}/comments"


def user_comment_path(user_id: str, comment_id: str) -> str:
    return f"{user_comments_collection(user_id)}/{comment_id}"
