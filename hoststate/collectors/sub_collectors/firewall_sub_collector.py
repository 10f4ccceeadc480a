# hoststate/collectors/sub_collectors/firewall_sub_collector.py
"""
Firewall Sub-Collector
Rules from ufw, iptables or firewalld, whichever answers first.
"""

from typing import List

from .base_sub_collector import SubCollector
from ..fallback_chain import Candidate
from ...models import FirewallRule
from ...processors.normalizer import build_firewall_rules
from ...processors.placeholders import default_firewall_rules

UFW_STATUS = ('ufw', 'status', 'numbered')
IPTABLES_LIST = ('iptables', '-L', '-n', '-v', '--line-numbers')
FIREWALLD_LIST = ('firewall-cmd', '--list-all')

# sudo -n never prompts; without a sudoers entry it fails immediately
FIREWALL_CANDIDATES = [
    Candidate('ufw', 'firewall', UFW_STATUS),
    Candidate('ufw', 'firewall', ('sudo', '-n') + UFW_STATUS, probes=('sudo', 'ufw')),
    Candidate('iptables', 'firewall', IPTABLES_LIST),
    Candidate('iptables', 'firewall', ('sudo', '-n') + IPTABLES_LIST, probes=('sudo', 'iptables')),
    Candidate('firewalld', 'firewall', FIREWALLD_LIST),
    Candidate('firewalld', 'firewall', ('sudo', '-n') + FIREWALLD_LIST, probes=('sudo', 'firewall-cmd')),
]


class FirewallSubCollector(SubCollector):
    """
    Collects firewall rules.

    Backends that are inactive or have no rules advance to the next one;
    with nothing found a single default accept rule is reported.
    """

    def get_section_name(self) -> str:
        return "firewall"

    def collect(self) -> List[FirewallRule]:
        self.log_start()

        result = self.run_chain('firewall', FIREWALL_CANDIDATES)
        if not result:
            self.logger.info("No firewall rules found, reporting default accept rule")
            rules = default_firewall_rules()
            self.mark_placeholder('firewall')
        else:
            rules = build_firewall_rules(result.records, backend=result.candidate.tool)

        self.log_end(len(rules))
        return rules
