from locust import HttpUser, task, between
import os

# Issue one key per user if KEY_SECRET is set on the target; otherwise verify
# with a static token (expects 401)
STATIC_TOKEN = os.getenv("LOAD_TEST_API_KEY", "invalid.token.value")


class NoemaUser(HttpUser):
    wait_time = between(1, 2)

    def on_start(self):
        self.api_key = STATIC_TOKEN
        r = self.client.post("/api/keys/new", json={"plan": "rest-api", "org": "loadtest"}, name="/api/keys/new")
        if r.status_code == 200:
            self.api_key = r.json().get("apiKey", STATIC_TOKEN)

    @task(3)
    def health(self):
        self.client.get("/api/health")

    @task
    def verify_key(self):
        with self.client.get(
            "/api/keys/verify",
            headers={"Authorization": f"Bearer {self.api_key}"},
            name="/api/keys/verify",
            catch_response=True,
        ) as r:
            # 401 is a valid answer for an unknown key
            if r.status_code in (200, 401):
                r.success()
