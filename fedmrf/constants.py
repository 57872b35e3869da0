VERSION = '0.4.0'

AS_PUBLIC = 'https://www.w3.org/ns/activitystreams#Public'

ACTOR_TYPES = ('Application', 'Group', 'Organization', 'Person', 'Service')

# Activities whose `object` must be present after validation
OBJECT_BEARING_TYPES = ('Create', 'Update', 'Delete', 'Flag', 'Follow', 'Announce', 'Like', 'Dislike', 'EmojiReact',
                        'Undo', 'Accept', 'Reject', 'Block', 'Add', 'Remove', 'Move')

ATTACHMENT_TYPES = ('Link', 'Document', 'Audio', 'Image', 'Video')

DEFAULT_MEDIA_TYPE = 'application/octet-stream'

# width of the id columns
MAX_ID_LENGTH = 512

VISIBILITY_PUBLIC = 'public'
VISIBILITY_UNLISTED = 'unlisted'
VISIBILITY_PRIVATE = 'private'
VISIBILITY_DIRECT = 'direct'

# ActivityPubLog.result values
APLOG_SUCCESS = 'success'
APLOG_IGNORED = 'ignored'
APLOG_FAILURE = 'failure'

# Local-only profile settings that never appear in the federated Update
LOCAL_PROFILE_SETTINGS = ('no_rich_text', 'hide_followers_count', 'hide_follows_count', 'hide_followers',
                          'hide_follows', 'hide_favorites', 'show_role', 'skip_thread_containment',
                          'allow_following_move', 'accepts_chat_messages', 'default_scope')
