"""File-based JSON storage standing in for the hosted database tables.

Data layout:
  data/
    conversations/
      <id>.json               Conversation row (theme, player_count, flags)
      <id>/messages.json      Append-only chat log
    packages/
      <id>.json               mystery_packages row (generation_status + content)
      <id>/characters.json    mystery_characters rows (bulk-replaced on import)
      <id>/assignments.json   character_assignments rows (guest + access token)
    profiles/
      <user_id>.json          profiles row (purchase flags)

Package writes publish change events on the realtime channel (see events.py),
keyed by conversation id.
"""

# Re-export all public symbols so `from mystery_maker import storage` works.

from .core import (  # noqa: F401
    conversations_dir,
    data_dir,
    init_storage,
    new_id,
    now_iso,
    packages_dir,
    profiles_dir,
    read_json,
    write_json,
)

from .conversations import (  # noqa: F401
    create_conversation,
    delete_conversation,
    get_conversation,
    list_conversations,
    update_conversation,
)

from .messages import (  # noqa: F401
    append_message,
    get_messages,
)

from .packages import (  # noqa: F401
    create_package,
    delete_package,
    get_package,
    get_package_for_conversation,
    update_package,
)

from .characters import (  # noqa: F401
    add_character,
    delete_characters,
    get_character,
    get_characters,
    replace_characters,
    update_character,
)

from .assignments import (  # noqa: F401
    find_assignment_by_token,
    get_assignments,
    set_assignment_sent,
    upsert_assignment,
)

from .profiles import (  # noqa: F401
    get_profile,
    update_profile,
)

from .events import (  # noqa: F401
    publish,
    subscribe,
    subscriber_count,
    unsubscribe,
)
