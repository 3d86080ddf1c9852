"""Sample documents (job descriptions and product listings) for demos."""

from typing import List

from libs.common.models import Document

SAMPLE_DOCUMENTS: List[Document] = [
    Document(
        id="job1",
        title="Senior Java Developer",
        content=(
            "We are looking for an experienced Java developer with Spring Boot expertise. "
            "The ideal candidate should have 5+ years of experience in building microservices "
            "and RESTful APIs. Knowledge of Solr, Elasticsearch, or similar search technologies is a plus."
        ),
        type="job_description",
        category="Engineering",
    ),
    Document(
        id="job2",
        title="Full Stack Developer",
        content=(
            "Join our team as a Full Stack Developer working with React, Node.js, and Java. "
            "You'll be building modern web applications and working with cloud technologies like AWS."
        ),
        type="job_description",
        category="Engineering",
    ),
    Document(
        id="job3",
        title="Data Engineer",
        content=(
            "Seeking a Data Engineer to design and implement data pipelines. Experience with "
            "Apache Spark, Kafka, and data warehousing solutions required."
        ),
        type="job_description",
        category="Data",
    ),
    Document(
        id="product1",
        title="Wireless Bluetooth Headphones",
        content=(
            "Premium wireless headphones with noise cancellation, 30-hour battery life, "
            "and superior sound quality. Perfect for music lovers and professionals."
        ),
        type="product_catalog",
        category="Electronics",
    ),
    Document(
        id="product2",
        title="Smart Fitness Watch",
        content=(
            "Track your fitness goals with this advanced smartwatch featuring heart rate monitoring, "
            "GPS tracking, and 50+ workout modes. Water-resistant design."
        ),
        type="product_catalog",
        category="Electronics",
    ),
    Document(
        id="product3",
        title="Ergonomic Office Chair",
        content=(
            "Comfortable ergonomic chair with lumbar support, adjustable height, and breathable mesh. "
            "Ideal for long work hours and home office setups."
        ),
        type="product_catalog",
        category="Furniture",
    ),
    Document(
        id="product4",
        title="Mechanical Gaming Keyboard",
        content=(
            "RGB backlit mechanical keyboard with Cherry MX switches. Perfect for gaming and typing "
            "with customizable key mapping and macro support."
        ),
        type="product_catalog",
        category="Electronics",
    ),
    Document(
        id="job4",
        title="DevOps Engineer",
        content=(
            "DevOps Engineer needed to manage CI/CD pipelines, container orchestration with Kubernetes, "
            "and cloud infrastructure on AWS. Terraform and Ansible experience preferred."
        ),
        type="job_description",
        category="Engineering",
    ),
    Document(
        id="product5",
        title="4K Ultra HD Monitor",
        content=(
            "27-inch 4K monitor with HDR support, 144Hz refresh rate, and USB-C connectivity. "
            "Perfect for gaming, design work, and professional use."
        ),
        type="product_catalog",
        category="Electronics",
    ),
]
