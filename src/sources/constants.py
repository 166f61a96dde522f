"""Constants for the built-in sources."""

from src.sources.base import StaticEntry


# Reddit
REDDIT_SOURCE_ID = "reddit"
REDDIT_SOURCE_NAME = "Reddit"
REDDIT_ID_PREFIX = "reddit"
REDDIT_BASE_URL = "https://www.reddit.com"
REDDIT_POST_BASE_URL = "https://reddit.com"
REDDIT_LISTING_URL_TEMPLATE = (
    "{base}/r/{subreddit}/{listing}.json?limit={limit}&raw_json=1"
)
DEFAULT_REDDIT_LISTINGS = ("best", "hot", "new")
DEFAULT_REDDIT_LIMIT = 20

# Relay envelope key holding the original payload as a JSON string
RELAY_CONTENTS_KEY = "contents"

FALLBACK_SUFFIX = " (Fallback)"

# (title, path under /r/<subreddit>/)
REDDIT_FALLBACK_POSTS: tuple[tuple[str, str], ...] = (
    ("Reddit is taking a breather. Fresh posts will be back shortly.", ""),
    ("Browse r/{subreddit} directly on Reddit", "top/"),
)

# Simulated Twitter feed (no live integration)
TWITTER_SOURCE_ID = "twitter"
TWITTER_SOURCE_NAME = "Twitter"
TWITTER_ID_PREFIX = "twitter_sim"

TWITTER_SIMULATED_ENTRIES: tuple[StaticEntry, ...] = (
    StaticEntry(
        title="VertxAI is hiring! 🚀 Join the future of AI.",
        url="https://twitter.com/vertxai",
    ),
    StaticEntry(
        title="When you fix a bug after 6 hours... typo. 🤦‍♂️",
        url="https://twitter.com/funnydev",
    ),
    StaticEntry(
        title="Tabs vs spaces is settled. It's whatever the linter says.",
        url="https://twitter.com/devhumor",
    ),
    StaticEntry(
        title="Shipping on a Friday? Bold strategy. Let's see if it pays off.",
        url="https://twitter.com/shipitfriday",
    ),
    StaticEntry(
        title="Me explaining to my code why it should work: 🧠💥",
        url="https://twitter.com/codingstruggles",
    ),
)
