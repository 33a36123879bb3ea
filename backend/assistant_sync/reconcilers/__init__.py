"""
Resource reconcilers.

Each reconciler drives one kind of remote resource (assistant, data file)
from its persisted signals toward its declared configuration. A pure
``plan_*`` function picks the action for a cycle; ``sync`` executes it and
returns a SyncResult; ``drain`` tears the resource down.
"""
