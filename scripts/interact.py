#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
论文注册系统交互脚本
通过HTTP接口完成授权、发布与购买的完整流程
服务端需设置 PAPER_REGISTRY_ENABLE_FAUCET=true 以便为买家注资
"""

import hashlib
import json
import sys
import time
from typing import Any, Dict, List

import requests
from eth_account import Account

BASE_URL = "http://127.0.0.1:8090/"


class RegistryWalkthrough:
    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url
        self.authority_keys = None
        self.admin = Account.create()
        self.alice = Account.create()
        self.bob = Account.create()
        self.buyer = Account.create()

    def _call(self, method: str, path: str, caller: str = None, **kwargs) -> Dict[str, Any]:
        headers = {"caller": caller} if caller else {}
        response = requests.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        response.raise_for_status()
        return response.json()

    def init_authority(self) -> None:
        """生成授权方密钥并初始化注册表"""
        print("\n=== Initializing Authority ===")
        self.authority_keys = self._call("POST", "auth/generate-keys")
        result = self._call("POST", "authority/init", json={
            "admin": self.admin.address,
            "public_key": self.authority_keys["public_key"],
        })
        print(f"Authority admin: {result['admin']}")

    def authorize(self, recipient: str, content: bytes, content_uid: str, price: int) -> Dict[str, Any]:
        """授权方对发布请求签名（正式部署中由后端离线完成）"""
        request = {
            "content_digest": hashlib.sha3_256(content).hexdigest(),
            "content_uid": content_uid,
            "price": price,
            "royalty_rate": 500,
            "recipient": recipient,
            "expires_at": int(time.time()) + 3600,
        }
        signed = self._call("POST", "auth/sign", json={
            "private_key": self.authority_keys["private_key"],
            "request": request,
        })
        return {"request": request, "signature": signed["signature"]}

    def mint_and_publish(self, publisher: str, authors: List[str], content_uid: str,
                         price: int) -> Dict[str, Any]:
        print(f"\n=== Publishing {content_uid} ===")
        authorization = self.authorize(publisher, content_uid.encode("utf-8"), content_uid, price)
        capability = self._call("POST", "capabilities", caller=publisher, json=authorization)
        print(f"Minted capability: {capability['id']}")
        paper = self._call("POST", "papers", caller=publisher, json={"authors": authors})
        print(f"Published paper: {json.dumps(paper, indent=2)}")
        return paper

    def purchase(self, paper_id: str) -> Dict[str, Any]:
        print(f"\n=== Purchasing {paper_id} ===")
        self._call("POST", f"accounts/{self.buyer.address}/credit", json={"amount": 10000})
        receipt = self._call("POST", f"papers/{paper_id}/purchase", caller=self.buyer.address)
        print(f"Receipt: {json.dumps(receipt, indent=2)}")
        return receipt

    def show_balances(self) -> None:
        print("\n=== Balances ===")
        for name, account in [("platform", self.admin), ("alice", self.alice),
                              ("bob", self.bob), ("buyer", self.buyer)]:
            balance = self._call("GET", f"accounts/{account.address}/balance")["balance"]
            print(f"{name:>8}: {balance}")

    def run(self) -> None:
        """运行完整流程"""
        try:
            self.init_authority()
            paper = self.mint_and_publish(self.alice.address,
                                          [self.alice.address, self.bob.address],
                                          "walkthrough-paper-1", 1000)
            self.purchase(paper["id"])
            self.show_balances()
            print(f"\nNetwork stats: {json.dumps(self._call('GET', 'stats/network'), indent=2)}")
            print("\n=== Walkthrough Completed ===")
        except requests.HTTPError as e:
            print(f"\nError occurred: {e}")
            print(f"Response content: {e.response.text}")
            sys.exit(1)


if __name__ == "__main__":
    RegistryWalkthrough(sys.argv[1] if len(sys.argv) > 1 else BASE_URL).run()
