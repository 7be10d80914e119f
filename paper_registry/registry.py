import hashlib
import threading
from typing import Dict, List, Optional

import networkx as nx
import numpy as np

from .errors import AlreadyPublished, InvalidInput, NotFound
from .models import Paper

COUNTER = "counter"
CONTENT_UID = "content_uid"
IDENTITY_STRATEGIES = (COUNTER, CONTENT_UID)


def content_key(content_uid: str) -> str:
    """按内容UID计算论文ID"""
    return hashlib.sha3_256(content_uid.encode("utf-8", "surrogatepass")).hexdigest()


class RegistryStore:
    """论文ID到论文记录的映射，附带引用网络"""

    def __init__(self, identity_strategy: str = CONTENT_UID):
        if identity_strategy not in IDENTITY_STRATEGIES:
            raise InvalidInput(f"Unknown identity strategy: {identity_strategy}")
        self.identity_strategy = identity_strategy
        self.graph = nx.DiGraph()
        self.papers: Dict[str, Paper] = {}
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def deduplicates(self) -> bool:
        return self.identity_strategy == CONTENT_UID

    def key_for_uid(self, content_uid: str) -> str:
        return content_key(content_uid)

    def exists(self, paper_id: str) -> bool:
        return paper_id in self.papers

    def uid_registered(self, content_uid: str) -> bool:
        return self.key_for_uid(content_uid) in self.papers

    def get(self, paper_id: str) -> Optional[Paper]:
        return self.papers.get(paper_id)

    def require(self, paper_id: str) -> Paper:
        paper = self.papers.get(paper_id)
        if paper is None:
            raise NotFound(f"Paper {paper_id} not found")
        return paper

    def list(self) -> List[Paper]:
        return list(self.papers.values())

    def insert(self, paper_fields: dict) -> Paper:
        """分配ID并写入论文；查重与写入是同一个原子操作"""
        with self._lock:
            if self.deduplicates:
                content_uid = paper_fields.get("content_uid")
                if not content_uid:
                    raise InvalidInput("content_uid is required for content-keyed registries")
                paper_id = self.key_for_uid(content_uid)
                if paper_id in self.papers:
                    raise AlreadyPublished(f"Content {content_uid} is already published")
            else:
                paper_id = str(self._counter + 1)
            for cited in paper_fields.get("cited_records", []):
                if cited not in self.papers:
                    raise NotFound(f"Cited paper {cited} not found")

            paper = Paper(id=paper_id, **paper_fields)
            if not self.deduplicates:
                self._counter += 1
            self.papers[paper.id] = paper
            self.graph.add_node(paper.id)
            for cited in paper.cited_records:
                self.graph.add_edge(paper.id, cited)
            return paper

    def get_citation_count(self, paper_id: str) -> int:
        """获取论文被引用次数"""
        return self.graph.in_degree(paper_id) if paper_id in self.graph else 0

    def get_citing_papers(self, paper_id: str) -> List[str]:
        """获取引用该论文的所有论文ID"""
        self.require(paper_id)
        return list(self.graph.predecessors(paper_id))

    def get_cited_papers(self, paper_id: str) -> List[str]:
        """获取该论文引用的所有论文ID"""
        self.require(paper_id)
        return list(self.graph.successors(paper_id))

    def get_author_papers(self, author: str) -> List[str]:
        """获取作者的所有论文ID"""
        return [paper_id for paper_id, paper in self.papers.items()
                if author in paper.authors]

    def get_citation_network_stats(self) -> Dict:
        """获取引用网络统计信息"""
        total_papers = len(self.papers)
        citation_counts = [self.get_citation_count(paper_id) for paper_id in self.papers]
        average_citations = float(np.mean(citation_counts)) if citation_counts else 0.0
        max_citations = int(max(citation_counts)) if citation_counts else 0

        # 空网络的密度按0处理
        try:
            network_density = float(nx.density(self.graph))
        except (ZeroDivisionError, nx.NetworkXError):
            network_density = 0.0

        return {
            'identity_strategy': self.identity_strategy,
            'total_papers': total_papers,
            'total_citations': self.graph.number_of_edges(),
            'average_citations': average_citations,
            'max_citations': max_citations,
            'network_density': network_density,
            'is_dag': nx.is_directed_acyclic_graph(self.graph) if total_papers > 0 else True
        }
