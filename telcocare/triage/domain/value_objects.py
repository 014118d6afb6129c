"""
Triage Value Objects
=====================

Immutable lookup tables for the triage pipeline.

The cluster table, the stopword list and the keyword limits are loaded
once at startup and passed by reference into the components that need
them.
"""

from typing import Dict, FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from telcocare.config import UrgencyLevel, Priority


DEFAULT_STOPWORDS = [
    # Indonesian function words
    "yang", "untuk", "dan", "atau", "dengan", "dari", "ke", "di", "pada", "dalam",
    "ini", "itu", "ada", "adalah", "akan", "sudah", "telah", "belum", "masih",
    "juga", "saja", "lagi", "tidak", "bukan", "jadi", "karena", "agar", "supaya",
    "bisa", "dapat", "harus", "sangat", "sekali", "kalau", "jika", "tapi",
    "tetapi", "namun", "sejak", "sampai", "hingga", "seperti", "oleh", "bagi",
    "para", "kami", "kita", "saya", "aku", "anda", "kamu", "dia", "mereka",
    "nya", "pun", "lah", "kah", "dong", "sih", "deh", "kok", "nih", "tuh",
    "mohon", "tolong", "terima", "kasih", "halo", "selamat", "pagi", "siang",
    "sore", "malam", "min", "kak", "gan", "bapak", "ibu", "pak", "bu",
    "apa", "bagaimana", "kenapa", "mengapa", "kapan", "dimana", "mana", "siapa",
    "yah", "ya", "gak", "nggak", "ga", "enggak", "udah", "belom",
]


class ClusterProfile(BaseModel):
    """Urgency/priority/escalation attributes of one classifier cluster."""
    model_config = ConfigDict(frozen=True)

    urgency: UrgencyLevel
    priority: Priority
    auto_escalate: bool = False
    description: str = ""


def _default_clusters() -> Dict[int, ClusterProfile]:
    return {
        0: ClusterProfile(urgency=UrgencyLevel.LOW, priority=Priority.P3,
                          description="Thanks, greetings and general questions"),
        1: ClusterProfile(urgency=UrgencyLevel.LOW, priority=Priority.P3,
                          description="Information requests"),
        2: ClusterProfile(urgency=UrgencyLevel.MEDIUM, priority=Priority.P2,
                          description="Follow-ups and data submissions"),
        3: ClusterProfile(urgency=UrgencyLevel.HIGH, priority=Priority.P1, auto_escalate=True,
                          description="Service outages and complete failures"),
    }


class KeywordRules(BaseModel):
    """Limits for the analytics keyword extractor."""
    model_config = ConfigDict(frozen=True)

    max_keywords: int = Field(default=7, ge=0)
    max_bigrams: int = Field(default=3, ge=0)
    min_length: int = Field(default=3, ge=1)
    # Two tokens plus a space must fit the 255-character keyword column
    max_length: int = Field(default=50, ge=1, le=120)


class TriageConfig(BaseModel):
    """
    Triage configuration loaded from YAML.

    This is a value object - immutable and defined by its attributes.
    """
    model_config = ConfigDict(frozen=True)

    clusters: Dict[int, ClusterProfile] = Field(
        default_factory=_default_clusters,
        description="Cluster id -> urgency/priority/auto-escalate"
    )
    stopwords: FrozenSet[str] = Field(
        default_factory=lambda: frozenset(DEFAULT_STOPWORDS),
        description="Tokens never reported as keywords"
    )
    keywords: KeywordRules = Field(default_factory=KeywordRules)

    @field_validator("clusters")
    @classmethod
    def validate_clusters(cls, v: Dict[int, ClusterProfile]) -> Dict[int, ClusterProfile]:
        """Cluster ids must be a contiguous range starting at 0."""
        if not v:
            raise ValueError("at least one cluster must be configured")
        if sorted(v) != list(range(len(v))):
            raise ValueError("cluster ids must be contiguous starting at 0")
        return v

    @field_validator("stopwords", mode="before")
    @classmethod
    def normalize_stopwords(cls, v):
        return frozenset(str(word).strip().lower() for word in v)

    @property
    def cluster_count(self) -> int:
        return len(self.clusters)

    def profile_for(self, cluster: int) -> ClusterProfile:
        """
        Look up the profile of a cluster.

        Raises:
            KeyError: If the cluster is not part of the table
        """
        return self.clusters[cluster]

    def urgency_mapping_lines(self) -> List[str]:
        """Human-readable cluster table, highest urgency first."""
        order = {UrgencyLevel.HIGH: 0, UrgencyLevel.MEDIUM: 1, UrgencyLevel.LOW: 2}
        grouped: Dict[UrgencyLevel, List[int]] = {}
        for cluster_id, profile in sorted(self.clusters.items()):
            grouped.setdefault(profile.urgency, []).append(cluster_id)

        lines = []
        for urgency in sorted(grouped, key=lambda u: order[u]):
            ids = grouped[urgency]
            label = "Cluster" if len(ids) == 1 else "Clusters"
            descriptions = "; ".join(
                self.clusters[i].description for i in ids if self.clusters[i].description
            )
            line = f"- {label} {', '.join(str(i) for i in ids)}: {urgency.value} urgency"
            if descriptions:
                line += f" ({descriptions})"
            lines.append(line)
        return lines
