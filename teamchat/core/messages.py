"""User-facing error messages and notices for the chat client."""

# Composer
COMPOSER_EMPTY_MESSAGE = "Type a message before sending"
COMPOSER_PLACEHOLDER = "Type @ to mention someone..."

# Mentions
MENTION_PREFIX_REQUIRED = "A search prefix is required (use an empty string to list everyone)"

# Session
SESSION_SUBSCRIBE_FAILED = "Could not join the project chat. Please try again."
SESSION_SUBSCRIBE_TIMEOUT = "Joining the project chat timed out. Please try again."
SESSION_NOT_ACTIVE = "The chat is not connected yet"
SESSION_CONVERSATION_REQUIRED = "A conversation id is required"

# Sending
SEND_FAILED = "Your message could not be sent. Please try again."
SEND_TIMEOUT = "Sending timed out. Please try again."

# Transport
TRANSPORT_NOT_CONNECTED = "Chat server is not connected"
TRANSPORT_REJECTED = "The chat server rejected the request"

# Payloads
PAYLOAD_MALFORMED = "Received malformed data from the server"

# Directory
DIRECTORY_UNAVAILABLE = "Project members could not be loaded"

# Credentials
CREDENTIALS_MISSING = "You are not signed in"
CREDENTIALS_INVALID = "Your session token is invalid"
CREDENTIALS_EXPIRED = "Your session has expired"
